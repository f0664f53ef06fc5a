"""
Live Interview - real-time spoken mock interviews against a remote model.

A duplex audio session with an AI interviewer: microphone capture, gapless
playback with barge-in, speaker-attributed transcripts, local recording and
rate-limit aware connection handling.
"""

__version__ = "0.1.0"
