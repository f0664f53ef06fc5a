"""Speaker output for scheduled playback clips."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import TYPE_CHECKING, Protocol

import numpy as np

from live_interview.audio.codec import PLAYBACK_SAMPLE_RATE

if TYPE_CHECKING:
    from live_interview.audio.playback import PlaybackItem

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    def play(self, item: PlaybackItem) -> None: ...

    def stop(self, item: PlaybackItem) -> None: ...

    def close(self) -> None: ...


class SoundDeviceOutput:
    """Plays clips back-to-back from a FIFO inside a PortAudio output callback.

    The scheduler already orders clips on a gapless timeline, so draining the
    FIFO sequentially realizes each clip's scheduled start.
    """

    def __init__(self, *, sample_rate: int = PLAYBACK_SAMPLE_RATE, device: int | str | None = None) -> None:
        self._sample_rate = sample_rate
        self._device = device
        self._lock = threading.Lock()
        # Entries are [item, samples, offset].
        self._fifo: deque[list] = deque()
        self._stream = None

    def _require_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "sounddevice is required for voice mode. Install Python deps with: pip install -e '.[voice]'."
            ) from e

    def start(self) -> None:
        if self._stream is not None:
            return
        sd = self._require_sounddevice()

        def callback(outdata, frames, time, status):  # noqa: ANN001
            if status:
                logger.debug(f"Output status: {status}")
            out = outdata[:, 0]
            out.fill(0.0)
            written = 0
            with self._lock:
                while written < frames and self._fifo:
                    entry = self._fifo[0]
                    samples, offset = entry[1], entry[2]
                    take = min(frames - written, samples.shape[0] - offset)
                    out[written : written + take] = samples[offset : offset + take]
                    written += take
                    entry[2] = offset + take
                    if entry[2] >= samples.shape[0]:
                        self._fifo.popleft()

        self._stream = sd.OutputStream(
            samplerate=self._sample_rate,
            channels=1,
            dtype="float32",
            device=self._device,
            callback=callback,
        )
        self._stream.start()
        logger.info("[LIVE][AUDIO] speaker output started rate=%d", self._sample_rate)

    def play(self, item: PlaybackItem) -> None:
        if self._stream is None:
            self.start()
        with self._lock:
            self._fifo.append([item, np.asarray(item.buffer, dtype=np.float32), 0])

    def stop(self, item: PlaybackItem) -> None:
        with self._lock:
            self._fifo = deque(entry for entry in self._fifo if entry[0] is not item)

    def close(self) -> None:
        with self._lock:
            self._fifo.clear()
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
