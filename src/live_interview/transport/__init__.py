"""
Transport module: the duplex connection to the remote conversational model.
"""

from live_interview.transport.base import LiveConnectConfig, TransportSession
from live_interview.transport.events import (
    AudioChunk,
    Closed,
    Interrupted,
    Ready,
    TranscriptEvent,
    TransportError,
    TransportEvent,
    TurnComplete,
    parse_server_message,
)

__all__ = [
    "AudioChunk",
    "Closed",
    "Interrupted",
    "LiveConnectConfig",
    "Ready",
    "TranscriptEvent",
    "TransportError",
    "TransportEvent",
    "TransportSession",
    "TurnComplete",
    "parse_server_message",
]
