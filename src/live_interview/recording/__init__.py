"""
Recording module: local capture of the interview media for later playback.
"""

from live_interview.recording.sink import (
    RecorderBackend,
    RecordingSink,
    RecordingStatus,
    WavFileRecorder,
)

__all__ = [
    "RecorderBackend",
    "RecordingSink",
    "RecordingStatus",
    "WavFileRecorder",
]
