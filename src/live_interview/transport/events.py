"""Events surfaced by a transport session, in remote order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from live_interview.session.schemas import Speaker, TranscriptFragment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class AudioChunk:
    data: bytes | str
    mime_type: str = "audio/pcm;rate=24000"


@dataclass(frozen=True)
class TranscriptEvent:
    fragment: TranscriptFragment


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class Interrupted:
    pass


@dataclass(frozen=True)
class TransportError:
    error: Any


@dataclass(frozen=True)
class Closed:
    reason: str = ""


TransportEvent = Union[Ready, AudioChunk, TranscriptEvent, TurnComplete, Interrupted, TransportError, Closed]


def _transcription(speaker: Speaker, transcription: Any) -> TranscriptEvent | None:
    if transcription is None:
        return None
    text = getattr(transcription, "text", None) or ""
    is_final = bool(getattr(transcription, "finished", False))
    if not text and not is_final:
        return None
    return TranscriptEvent(TranscriptFragment(speaker=speaker, text=text, is_final=is_final))


def parse_server_message(message: Any) -> list[TransportEvent]:
    """
    Map one Live API server message to transport events.

    Order within a message: audio parts, candidate transcription, interviewer
    transcription, turn complete, interrupted.
    """
    content = getattr(message, "server_content", None)
    if content is None:
        return []

    events: list[TransportEvent] = []

    model_turn = getattr(content, "model_turn", None)
    for part in getattr(model_turn, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None)
        if data:
            mime_type = getattr(inline, "mime_type", None) or "audio/pcm;rate=24000"
            events.append(AudioChunk(data=data, mime_type=mime_type))

    for speaker, attr in ((Speaker.CANDIDATE, "input_transcription"), (Speaker.INTERVIEWER, "output_transcription")):
        event = _transcription(speaker, getattr(content, attr, None))
        if event is not None:
            events.append(event)

    if getattr(content, "turn_complete", False):
        events.append(TurnComplete())
    if getattr(content, "interrupted", False):
        events.append(Interrupted())
    return events
