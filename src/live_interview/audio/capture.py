"""Microphone capture to outbound PCM frames.

Frames are fire-and-forget: when the transport is not ready, or the session
is muted, the frame for that instant is dropped. Nothing is queued here.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from live_interview.audio.codec import AudioFrame, encode_frame
from live_interview.audio.media import MediaTrack

logger = logging.getLogger(__name__)


class AudioCaptureEncoder:
    def __init__(
        self,
        track: MediaTrack,
        *,
        send: Callable[[AudioFrame], bool],
        is_muted: Callable[[], bool] = lambda: False,
        on_closed: Callable[[str], None] | None = None,
        frame_samples: int = 4096,
    ) -> None:
        if frame_samples <= 0:
            raise ValueError("frame_samples must be positive")
        self._track = track
        self._send = send
        self._is_muted = is_muted
        self._on_closed = on_closed
        self._frame_samples = frame_samples

        self._copy: MediaTrack | None = None
        self._pending = np.zeros(0, dtype=np.float32)
        self._sending = False
        self._stopped = False
        self._closed_reported = False

        self.frames_produced = 0
        self.frames_sent = 0
        self.frames_dropped = 0

    @property
    def frame_samples(self) -> int:
        return self._frame_samples

    @property
    def sending(self) -> bool:
        return self._sending

    @property
    def attached(self) -> bool:
        return self._copy is not None

    def attach(self) -> None:
        """Start receiving blocks through a dedicated copy of the borrowed track."""
        if self._copy is not None or self._stopped:
            return
        copy = self._track.clone()
        copy.add_listener(self._on_block)
        copy.on_ended(self._on_track_ended)
        self._copy = copy
        logger.debug("[LIVE][AUDIO] capture attached track=%s copy=%s", self._track.id, copy.id)

    def start_sending(self) -> None:
        """Called once the transport is ready."""
        if self._stopped:
            return
        self._sending = True

    def stop(self) -> None:
        """Stop producing and sending frames. Idempotent."""
        self._sending = False
        if self._stopped:
            return
        self._stopped = True
        self._pending = np.zeros(0, dtype=np.float32)
        logger.info(
            "[LIVE][AUDIO] capture stopped produced=%d sent=%d dropped=%d",
            self.frames_produced,
            self.frames_sent,
            self.frames_dropped,
        )

    def release(self) -> None:
        """Stop the dedicated track copy. The borrowed track keeps running."""
        self.stop()
        copy, self._copy = self._copy, None
        if copy is not None:
            copy.stop()

    def _on_block(self, block: np.ndarray) -> None:
        if self._stopped:
            return
        samples = np.asarray(block, dtype=np.float32).reshape(-1)
        if self._pending.size:
            samples = np.concatenate([self._pending, samples])

        n = self._frame_samples
        full = samples.size // n
        for i in range(full):
            self._emit(encode_frame(samples[i * n : (i + 1) * n]))
        self._pending = samples[full * n :].copy()

    def _emit(self, frame: AudioFrame) -> None:
        self.frames_produced += 1
        # Capture keeps running while muted so unmuting is instantaneous.
        if not self._sending or self._is_muted():
            self.frames_dropped += 1
            return
        if self._send(frame):
            self.frames_sent += 1
        else:
            self.frames_dropped += 1

    def _on_track_ended(self) -> None:
        if self._stopped or self._closed_reported:
            return
        self._closed_reported = True
        self._sending = False
        self._copy = None
        logger.warning("[LIVE][AUDIO] capture track ended")
        if self._on_closed is not None:
            self._on_closed("capture device stream ended")
