"""
Session module: interview settings, transcript, prompts and retry handling.

The live controller (``live_interview.session.controller``) and the chat
interview (``live_interview.session.chat``) depend on the transport package
and are imported from their modules directly.
"""

from live_interview.session.schemas import (
    ErrorInfo,
    InterviewResult,
    InterviewSettings,
    SessionState,
    SessionStatus,
    Speaker,
    TranscriptFragment,
    TranscriptTurn,
)
from live_interview.session.transcript import TranscriptAggregator, TranscriptLog
from live_interview.session.retry import RetryPolicy, RetryState, retry_rate_limited
from live_interview.session.prompts import build_system_instruction, opening_line

__all__ = [
    "ErrorInfo",
    "InterviewResult",
    "InterviewSettings",
    "RetryPolicy",
    "RetryState",
    "SessionState",
    "SessionStatus",
    "Speaker",
    "TranscriptAggregator",
    "TranscriptFragment",
    "TranscriptLog",
    "TranscriptTurn",
    "build_system_instruction",
    "opening_line",
    "retry_rate_limited",
]
