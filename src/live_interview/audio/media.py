"""Device stream model (LLM-agnostic).

This module is intentionally "dumb hardware I/O": it knows nothing about the
interview, the transport, or the remote model.

A ``TrackSource`` produces sample blocks and fans them out to every live
``MediaTrack`` attached to it. Consumers never stop a borrowed track; they
``clone()`` it and stop only their own copy, so one consumer's teardown cannot
break another consumer of the same device.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np

from live_interview.audio.codec import CAPTURE_SAMPLE_RATE
from live_interview.errors import DeviceUnavailableError

logger = logging.getLogger(__name__)

TrackKind = Literal["audio", "video"]
BlockListener = Callable[[np.ndarray], None]

_track_ids = itertools.count(1)


@dataclass(frozen=True)
class AudioIOConfig:
    sample_rate: int = CAPTURE_SAMPLE_RATE
    channels: int = 1
    blocksize: int = 4096
    dtype: str = "float32"
    device: int | str | None = None


@dataclass(frozen=True)
class VideoIOConfig:
    device: int = 0
    fps: float = 15.0
    width: int | None = None
    height: int | None = None


class TrackSource:
    """Produces blocks for the tracks attached to it.

    ``sample_rate`` is samples per second for audio sources and frames per
    second for video sources.
    """

    def __init__(self, *, sample_rate: int = CAPTURE_SAMPLE_RATE, label: str = "") -> None:
        self.sample_rate = sample_rate
        self.label = label
        self._tracks: list[MediaTrack] = []
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def attach(self, track: MediaTrack) -> None:
        if self._ended:
            track._end()
            return
        self._tracks.append(track)

    def detach(self, track: MediaTrack) -> None:
        if track in self._tracks:
            self._tracks.remove(track)

    @property
    def attached(self) -> int:
        return len(self._tracks)

    def push(self, block: np.ndarray) -> None:
        """Deliver one block to every attached track (event loop thread)."""
        if self._ended:
            return
        for track in list(self._tracks):
            track._deliver(block)

    def end(self) -> None:
        """Mark the device as gone; every attached track ends."""
        if self._ended:
            return
        self._ended = True
        tracks, self._tracks = self._tracks, []
        for track in tracks:
            track._end()


class MediaTrack:
    def __init__(self, source: TrackSource, kind: TrackKind = "audio", *, label: str = "") -> None:
        self.id = next(_track_ids)
        self.kind = kind
        self.label = label or source.label
        self._source = source
        self._listeners: list[BlockListener] = []
        self._ended_callbacks: list[Callable[[], None]] = []
        self._ready_state = "live"
        source.attach(self)

    @property
    def ready_state(self) -> str:
        return self._ready_state

    @property
    def sample_rate(self) -> int:
        return self._source.sample_rate

    def clone(self) -> MediaTrack:
        """Return a dedicated copy fed by the same source."""
        return MediaTrack(self._source, self.kind, label=self.label)

    def add_listener(self, listener: BlockListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: BlockListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_ended(self, callback: Callable[[], None]) -> None:
        if self._ready_state == "ended":
            callback()
            return
        self._ended_callbacks.append(callback)

    def stop(self) -> None:
        """Stop this track only. The source and sibling tracks keep running."""
        if self._ready_state == "ended":
            return
        self._ready_state = "ended"
        self._source.detach(self)
        self._listeners.clear()
        self._ended_callbacks.clear()

    def _deliver(self, block: np.ndarray) -> None:
        if self._ready_state != "live":
            return
        for listener in list(self._listeners):
            listener(block)

    def _end(self) -> None:
        # Source-driven end: unlike stop(), observers are told.
        if self._ready_state == "ended":
            return
        self._ready_state = "ended"
        self._listeners.clear()
        callbacks, self._ended_callbacks = self._ended_callbacks, []
        for callback in callbacks:
            callback()


class MediaStream:
    def __init__(self, tracks: list[MediaTrack] | None = None) -> None:
        self._tracks = list(tracks or [])

    def get_tracks(self) -> list[MediaTrack]:
        return list(self._tracks)

    def get_audio_tracks(self) -> list[MediaTrack]:
        return [t for t in self._tracks if t.kind == "audio"]

    def get_video_tracks(self) -> list[MediaTrack]:
        return [t for t in self._tracks if t.kind == "video"]

    @property
    def active(self) -> bool:
        return any(t.ready_state == "live" for t in self._tracks)

    def clone(self, kinds: tuple[TrackKind, ...] = ("audio", "video")) -> MediaStream:
        """Dedicated copy holding clones of the selected track kinds."""
        return MediaStream([t.clone() for t in self._tracks if t.kind in kinds and t.ready_state == "live"])

    def stop(self) -> None:
        for track in self._tracks:
            track.stop()


class MicrophoneSource(TrackSource):
    """sounddevice-backed capture source.

    PortAudio calls back on its own thread; blocks are copied and handed to
    the event loop so tracks and their listeners only ever run on the loop.
    """

    def __init__(self, config: AudioIOConfig | None = None) -> None:
        self._config = config or AudioIOConfig()
        super().__init__(sample_rate=self._config.sample_rate, label="microphone")
        self._stream = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def config(self) -> AudioIOConfig:
        return self._config

    def _require_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as e:  # pragma: no cover
            raise DeviceUnavailableError(
                "sounddevice is required for voice mode. Install Python deps with: pip install -e '.[voice]'. "
                "If you see 'PortAudio library not found', install PortAudio (Debian/Ubuntu: sudo apt-get install portaudio19-dev)."
            ) from e

    async def start(self) -> None:
        """Open the input device and start delivering blocks."""
        sd = self._require_sounddevice()
        self._loop = asyncio.get_running_loop()
        loop = self._loop

        def callback(indata, frames, time, status):  # noqa: ANN001
            if status:
                logger.debug(f"Input status: {status}")
            block = indata[:, 0].copy() if indata.ndim > 1 else indata.copy()
            loop.call_soon_threadsafe(self.push, block)

        def finished() -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(self.end)

        try:
            self._stream = sd.InputStream(
                samplerate=self._config.sample_rate,
                channels=self._config.channels,
                dtype=self._config.dtype,
                blocksize=self._config.blocksize,
                device=self._config.device,
                callback=callback,
                finished_callback=finished,
            )
            await asyncio.to_thread(self._stream.start)
        except sd.PortAudioError as e:
            self._stream = None
            raise DeviceUnavailableError(f"Could not open the microphone: {e}") from e

        logger.info(
            "[LIVE][AUDIO] microphone started rate=%d blocksize=%d",
            self._config.sample_rate,
            self._config.blocksize,
        )

    async def close(self) -> None:
        """Stop the device. Owned by whoever opened the microphone."""
        if self._stream is None:
            return
        stream = self._stream
        self._stream = None
        await asyncio.to_thread(stream.stop)
        await asyncio.to_thread(stream.close)
        self.end()


async def open_microphone(config: AudioIOConfig | None = None) -> tuple[MediaStream, MicrophoneSource]:
    """Acquire the microphone and return a stream holding one live audio track."""
    source = MicrophoneSource(config)
    await source.start()
    return MediaStream([MediaTrack(source, "audio")]), source


def require_cv2():
    try:
        import cv2  # type: ignore

        return cv2
    except Exception as e:  # pragma: no cover
        raise DeviceUnavailableError(
            "opencv is required for video mode. Install Python deps with: pip install -e '.[video]'."
        ) from e


class CameraSource(TrackSource):
    """OpenCV-backed camera source.

    ``VideoCapture.read()`` blocks, so frames are read on a worker thread and
    handed to the event loop like microphone blocks. Frames are BGR uint8
    arrays as returned by OpenCV.
    """

    def __init__(self, config: VideoIOConfig | None = None) -> None:
        self._config = config or VideoIOConfig()
        super().__init__(sample_rate=max(1, round(self._config.fps)), label="camera")
        self._capture = None
        self._reader: asyncio.Task | None = None
        self._running = False

    @property
    def config(self) -> VideoIOConfig:
        return self._config

    async def start(self) -> None:
        """Open the camera and start delivering frames."""
        cv2 = require_cv2()
        loop = asyncio.get_running_loop()

        capture = await asyncio.to_thread(cv2.VideoCapture, self._config.device)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailableError(f"Could not open camera {self._config.device}")
        if self._config.width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.width)
        if self._config.height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.height)

        self._capture = capture
        self._running = True
        self._reader = asyncio.create_task(asyncio.to_thread(self._read_loop, capture, loop))
        logger.info("[LIVE][VIDEO] camera started device=%s fps=%.1f", self._config.device, self._config.fps)

    def _read_loop(self, capture, loop: asyncio.AbstractEventLoop) -> None:  # noqa: ANN001
        interval = 1.0 / self._config.fps
        while self._running:
            started = time.monotonic()
            ok, frame = capture.read()
            if not ok:
                logger.warning("[LIVE][VIDEO] camera stopped delivering frames")
                break
            loop.call_soon_threadsafe(self.push, frame)
            remaining = interval - (time.monotonic() - started)
            if remaining > 0:
                time.sleep(remaining)
        if not loop.is_closed():
            loop.call_soon_threadsafe(self.end)

    async def close(self) -> None:
        """Stop reading and release the camera."""
        if self._capture is None:
            return
        capture, reader = self._capture, self._reader
        self._capture = None
        self._reader = None
        self._running = False
        if reader is not None:
            await reader
        await asyncio.to_thread(capture.release)
        self.end()


async def open_camera(config: VideoIOConfig | None = None) -> tuple[MediaTrack, CameraSource]:
    """Acquire the camera and return one live video track."""
    source = CameraSource(config)
    await source.start()
    return MediaTrack(source, "video"), source
