"""
Transcript aggregation.

Incremental transcription fragments from both sides of the conversation are
buffered per speaker and closed into turns when the remote signals the end of
a turn. Within one boundary the candidate's utterance is always recorded
before the interviewer's reply.
"""

from collections.abc import Iterator

from live_interview.session.schemas import Speaker, TranscriptFragment, TranscriptTurn

TURN_ORDER = (Speaker.CANDIDATE, Speaker.INTERVIEWER)


class TranscriptLog:
    """
    Append-only, ordered sequence of finalized turns.

    Turns are immutable and are never modified or removed once appended.
    """

    def __init__(self) -> None:
        self._turns: list[TranscriptTurn] = []

    def append(self, turn: TranscriptTurn) -> None:
        self._turns.append(turn)

    @property
    def turns(self) -> list[TranscriptTurn]:
        """Get a copy of all turns."""
        return self._turns.copy()

    def __iter__(self) -> Iterator[TranscriptTurn]:
        return iter(self._turns.copy())

    def __len__(self) -> int:
        return len(self._turns)

    def render(self) -> str:
        """Render the transcript as ``Speaker: text`` blocks separated by blank lines."""
        return "\n\n".join(turn.render() for turn in self._turns)


class TranscriptAggregator:
    """
    Buffers fragments per speaker and finalizes them into a ``TranscriptLog``.
    """

    def __init__(self, log: TranscriptLog | None = None) -> None:
        """
        Initialize the aggregator.

        Args:
            log: Log that receives finalized turns. A new one is created if
                not given.
        """
        self._log = log if log is not None else TranscriptLog()
        self._pending: dict[Speaker, str] = {speaker: "" for speaker in TURN_ORDER}

    @property
    def log(self) -> TranscriptLog:
        return self._log

    def pending(self, speaker: Speaker) -> str:
        """Get the in-progress text for ``speaker``."""
        return self._pending[speaker]

    @property
    def caption(self) -> str:
        """Text to show as a live caption: the interviewer if speaking, else the candidate."""
        interviewer = self._pending[Speaker.INTERVIEWER].strip()
        if interviewer:
            return interviewer
        return self._pending[Speaker.CANDIDATE].strip()

    def append(self, speaker: Speaker, text: str, *, is_final: bool = False) -> list[TranscriptTurn]:
        """
        Add a fragment of text for ``speaker``.

        Args:
            speaker: Side of the conversation the text belongs to.
            text: Fragment text, concatenated as-is to the speaker's buffer.
            is_final: Close the speaker's buffer into a turn immediately.

        Returns:
            Turns appended to the log by this call (empty unless ``is_final``).
        """
        self._pending[speaker] += text
        if not is_final:
            return []

        speakers = [speaker]
        if speaker is Speaker.INTERVIEWER:
            # Keep candidate-before-interviewer ordering.
            speakers = list(TURN_ORDER)
        return self._finalize(speakers)

    def append_fragment(self, fragment: TranscriptFragment) -> list[TranscriptTurn]:
        return self.append(fragment.speaker, fragment.text, is_final=fragment.is_final)

    def finalize_turn(self) -> list[TranscriptTurn]:
        """
        Close both buffers at a turn boundary.

        Returns:
            The turns appended, candidate first. Empty if both buffers were
            empty.
        """
        return self._finalize(TURN_ORDER)

    def flush_pending(self) -> list[TranscriptTurn]:
        """Finalize whatever is still buffered (used at teardown)."""
        return self._finalize(TURN_ORDER)

    def _finalize(self, speakers) -> list[TranscriptTurn]:
        appended: list[TranscriptTurn] = []
        for speaker in speakers:
            text = self._pending[speaker].strip()
            self._pending[speaker] = ""
            if text:
                turn = TranscriptTurn(speaker=speaker, text=text)
                self._log.append(turn)
                appended.append(turn)
        return appended
