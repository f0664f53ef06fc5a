"""Local audio subsystem.

mic -> capture encoder -> transport -> playback scheduler -> speaker

Device access (sounddevice) is imported lazily, so the codec, scheduler and
track model work without PortAudio installed.
"""

from live_interview.audio.capture import AudioCaptureEncoder
from live_interview.audio.codec import (
    CAPTURE_MIME_TYPE,
    CAPTURE_SAMPLE_RATE,
    PLAYBACK_SAMPLE_RATE,
    AudioFrame,
    encode_frame,
    float_to_pcm16,
    pcm16_to_float,
    silent_frame,
)
from live_interview.audio.media import (
    AudioIOConfig,
    MediaStream,
    MediaTrack,
    MicrophoneSource,
    TrackSource,
    open_microphone,
)
from live_interview.audio.output import AudioOutput, SoundDeviceOutput
from live_interview.audio.playback import PlaybackItem, PlaybackScheduler

__all__ = [
    "AudioCaptureEncoder",
    "AudioFrame",
    "AudioIOConfig",
    "AudioOutput",
    "CAPTURE_MIME_TYPE",
    "CAPTURE_SAMPLE_RATE",
    "MediaStream",
    "MediaTrack",
    "MicrophoneSource",
    "PLAYBACK_SAMPLE_RATE",
    "PlaybackItem",
    "PlaybackScheduler",
    "SoundDeviceOutput",
    "TrackSource",
    "encode_frame",
    "float_to_pcm16",
    "open_microphone",
    "pcm16_to_float",
    "silent_frame",
]
