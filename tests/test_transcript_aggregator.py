from live_interview.session.schemas import Speaker, TranscriptFragment
from live_interview.session.transcript import TranscriptAggregator, TranscriptLog


def _pairs(log: TranscriptLog) -> list[tuple[Speaker, str]]:
    return [(t.speaker, t.text) for t in log]


class TestTranscriptAggregator:
    """Turn boundaries and speaker ordering."""

    def test_candidate_then_interviewer_within_one_turn(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.CANDIDATE, "a")
        agg.append(Speaker.CANDIDATE, "b")
        agg.append(Speaker.INTERVIEWER, "c")

        turns = agg.finalize_turn()

        assert _pairs(agg.log) == [(Speaker.CANDIDATE, "ab"), (Speaker.INTERVIEWER, "c")]
        assert turns == agg.log.turns

    def test_interviewer_first_in_arrival_is_still_recorded_second(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.INTERVIEWER, "Next question?")
        agg.append(Speaker.CANDIDATE, "My answer.")
        agg.finalize_turn()

        assert _pairs(agg.log) == [
            (Speaker.CANDIDATE, "My answer."),
            (Speaker.INTERVIEWER, "Next question?"),
        ]

    def test_empty_turn_complete_appends_nothing(self):
        agg = TranscriptAggregator()
        assert agg.finalize_turn() == []
        assert len(agg.log) == 0

    def test_whitespace_only_buffer_is_not_a_turn(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.CANDIDATE, "   ")
        agg.append(Speaker.INTERVIEWER, "Hello")
        agg.finalize_turn()
        assert _pairs(agg.log) == [(Speaker.INTERVIEWER, "Hello")]

    def test_one_sided_turn(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.INTERVIEWER, "Welcome ")
        agg.append(Speaker.INTERVIEWER, "to the interview.")
        agg.finalize_turn()
        assert _pairs(agg.log) == [(Speaker.INTERVIEWER, "Welcome to the interview.")]
        assert agg.pending(Speaker.INTERVIEWER) == ""

    def test_final_interviewer_fragment_closes_candidate_first(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.CANDIDATE, "I built a compiler.")
        turns = agg.append_fragment(
            TranscriptFragment(speaker=Speaker.INTERVIEWER, text="Tell me more.", is_final=True)
        )
        assert [t.speaker for t in turns] == [Speaker.CANDIDATE, Speaker.INTERVIEWER]

    def test_final_candidate_fragment_leaves_interviewer_pending(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.INTERVIEWER, "So")
        agg.append(Speaker.CANDIDATE, "Yes.", is_final=True)
        assert _pairs(agg.log) == [(Speaker.CANDIDATE, "Yes.")]
        assert agg.pending(Speaker.INTERVIEWER) == "So"

    def test_caption_prefers_interviewer(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.CANDIDATE, "um")
        assert agg.caption == "um"
        agg.append(Speaker.INTERVIEWER, "Okay")
        assert agg.caption == "Okay"

    def test_flush_pending_and_render(self):
        agg = TranscriptAggregator()
        agg.append(Speaker.INTERVIEWER, "Hello Ada.")
        agg.finalize_turn()
        agg.append(Speaker.CANDIDATE, "Hi")
        agg.flush_pending()

        assert agg.log.render() == "Interviewer: Hello Ada.\n\nCandidate: Hi"
