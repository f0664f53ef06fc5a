"""16-bit PCM codec for the live audio wire format.

Capture side: 16 kHz mono, ``audio/pcm;rate=16000``.
Playback side: 24 kHz mono.

The rates are fixed by the remote service and are not configurable.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

CAPTURE_SAMPLE_RATE = 16000
PLAYBACK_SAMPLE_RATE = 24000
CAPTURE_MIME_TYPE = f"audio/pcm;rate={CAPTURE_SAMPLE_RATE}"
PCM_SCALE = 32768.0
KICK_FRAME_SAMPLES = 160


def float_to_pcm16(samples: np.ndarray | list[float]) -> np.ndarray:
    """Quantize float samples in [-1, 1] to little-endian int16.

    Uses ``round(sample * 32768)``; values past the int16 range are clipped
    (+1.0 becomes 32767).
    """
    scaled = np.round(np.asarray(samples, dtype=np.float64) * PCM_SCALE)
    return np.clip(scaled, -32768, 32767).astype("<i2")


def pcm16_to_float(data: bytes | str) -> np.ndarray:
    """Decode little-endian int16 PCM (raw or base64 text) to float32 in [-1, 1)."""
    if isinstance(data, str):
        try:
            data = base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Audio payload is not valid base64: {e}") from e

    if len(data) % 2:
        logger.warning("[LIVE][AUDIO] dropping trailing odd byte from %d-byte chunk", len(data))
        data = data[:-1]

    pcm = np.frombuffer(data, dtype="<i2")
    return pcm.astype(np.float32) / PCM_SCALE


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """A block of quantized samples ready for the transport."""

    samples: np.ndarray
    sample_rate: int = CAPTURE_SAMPLE_RATE
    mime_type: str = CAPTURE_MIME_TYPE

    def __post_init__(self) -> None:
        self.samples.setflags(write=False)

    @property
    def pcm_bytes(self) -> bytes:
        return self.samples.astype("<i2", copy=False).tobytes()

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_s(self) -> float:
        return self.sample_count / float(self.sample_rate)


def encode_frame(samples: np.ndarray, *, sample_rate: int = CAPTURE_SAMPLE_RATE) -> AudioFrame:
    """Quantize one block of float samples into an ``AudioFrame``."""
    mono = np.asarray(samples, dtype=np.float32).reshape(-1)
    return AudioFrame(
        samples=float_to_pcm16(mono),
        sample_rate=sample_rate,
        mime_type=f"audio/pcm;rate={sample_rate}",
    )


def silent_frame(sample_count: int = KICK_FRAME_SAMPLES) -> AudioFrame:
    """Silent frame used to prompt a remote model that waits for input."""
    return encode_frame(np.zeros(sample_count, dtype=np.float32))
