"""Local recording of the interview media stream.

The recorder is bound to a dedicated copy of the stream's tracks, never to the
live-shared stream itself, so stopping the recorder cannot stop the tracks the
transport is still reading from.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import wave
from enum import Enum
from pathlib import Path
from typing import Literal, Protocol

import numpy as np

from live_interview.audio.codec import float_to_pcm16
from live_interview.audio.media import MediaStream, require_cv2

logger = logging.getLogger(__name__)

RecordingKinds = Literal["audio", "audio+video"]


class RecordingStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


class RecorderBackend(Protocol):
    """Encodes the blocks of a dedicated stream into one finished file."""

    supports_video: bool

    def start(self, stream: MediaStream) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    async def finalize(self) -> str | None: ...


class WavFileRecorder:
    """Records the first audio track of a stream to a 16-bit mono WAV file."""

    supports_video = False

    def __init__(self, output_dir: str | Path = "data/recordings") -> None:
        self._output_dir = Path(output_dir)
        self._blocks: list[np.ndarray] = []
        self._sample_rate = 16000
        self._paused = False
        self._track = None

    def start(self, stream: MediaStream) -> None:
        self._blocks = []
        self._paused = False
        tracks = stream.get_audio_tracks()
        if not tracks:
            self._track = None
            return
        self._track = tracks[0]
        self._sample_rate = self._track.sample_rate
        self._track.add_listener(self._on_block)

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def _on_block(self, block: np.ndarray) -> None:
        if not self._paused:
            self._blocks.append(np.asarray(block, dtype=np.float32).reshape(-1).copy())

    async def finalize(self) -> str | None:
        path = await self.finalize_path()
        return path.resolve().as_uri() if path is not None else None

    async def finalize_path(self) -> Path | None:
        if self._track is not None:
            self._track.remove_listener(self._on_block)
            self._track = None
        if not self._blocks:
            return None
        blocks, self._blocks = self._blocks, []
        audio = np.concatenate(blocks)
        return await asyncio.to_thread(self._write_wav, audio)

    def _write_wav(self, audio: np.ndarray) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix="interview_", suffix=".wav", dir=self._output_dir, delete=False
        ) as f:
            wav_path = Path(f.name)

        with wave.open(str(wav_path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)  # int16
            wf.setframerate(self._sample_rate)
            wf.writeframes(float_to_pcm16(audio).tobytes())
        return wav_path


class VideoFileRecorder:
    """Records the camera track and the microphone track into one video file.

    Frames are encoded as they arrive with ``cv2.VideoWriter`` (MJPG in AVI);
    audio goes through a ``WavFileRecorder``. ``finalize()`` muxes both into a
    Matroska file with ffmpeg. Without ffmpeg the video-only file is returned
    and the WAV stays next to it.
    """

    supports_video = True

    def __init__(
        self,
        output_dir: str | Path = "data/recordings",
        *,
        fps: float | None = None,
        ffmpeg: str | None = "ffmpeg",
        fourcc: str = "MJPG",
    ) -> None:
        self._output_dir = Path(output_dir)
        self._audio = WavFileRecorder(output_dir)
        self._fps = fps
        self._ffmpeg = ffmpeg
        self._fourcc = fourcc
        self._cv2 = None
        self._writer = None
        self._video_path: Path | None = None
        self._frame_size: tuple[int, int] | None = None
        self._frames = 0
        self._paused = False
        self._track = None

    @property
    def frames_written(self) -> int:
        return self._frames

    def start(self, stream: MediaStream) -> None:
        self._audio.start(stream)
        self._paused = False
        self._frames = 0
        tracks = stream.get_video_tracks()
        if not tracks:
            self._track = None
            return
        self._cv2 = require_cv2()
        self._track = tracks[0]
        self._track.add_listener(self._on_frame)

    def pause(self) -> None:
        self._paused = True
        self._audio.pause()

    def resume(self) -> None:
        self._paused = False
        self._audio.resume()

    def _on_frame(self, frame: np.ndarray) -> None:
        if self._paused:
            return
        cv2 = self._cv2
        frame = np.asarray(frame, dtype=np.uint8)
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        if self._writer is None:
            self._open_writer(frame)
        elif (frame.shape[1], frame.shape[0]) != self._frame_size:
            frame = cv2.resize(frame, self._frame_size)
        self._writer.write(frame)
        self._frames += 1

    def _open_writer(self, frame: np.ndarray) -> None:
        cv2 = self._cv2
        self._output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix="interview_", suffix=".avi", dir=self._output_dir, delete=False
        ) as f:
            path = Path(f.name)

        height, width = frame.shape[:2]
        fps = float(self._fps or self._track.sample_rate)
        self._writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*self._fourcc), fps, (width, height))
        self._video_path = path
        self._frame_size = (width, height)
        logger.info(f"[LIVE][RECORDER] video writer opened {width}x{height}@{fps:.1f} path={path}")

    async def finalize(self) -> str | None:
        if self._track is not None:
            self._track.remove_listener(self._on_frame)
            self._track = None
        audio_path = await self._audio.finalize_path()

        writer, self._writer = self._writer, None
        video_path, self._video_path = self._video_path, None
        self._frame_size = None
        if writer is not None:
            await asyncio.to_thread(writer.release)

        if video_path is None:
            return audio_path.resolve().as_uri() if audio_path is not None else None
        if audio_path is None:
            return video_path.resolve().as_uri()

        muxed = await self._mux(video_path, audio_path)
        if muxed is None:
            logger.warning(f"[LIVE][RECORDER] audio not muxed; kept at {audio_path}")
            return video_path.resolve().as_uri()
        video_path.unlink(missing_ok=True)
        audio_path.unlink(missing_ok=True)
        return muxed.resolve().as_uri()

    async def _mux(self, video_path: Path, audio_path: Path) -> Path | None:
        binary = shutil.which(self._ffmpeg) if self._ffmpeg else None
        if binary is None:
            logger.warning("[LIVE][RECORDER] ffmpeg not found; cannot mux audio into the video")
            return None

        out_path = video_path.with_suffix(".mkv")
        proc = await asyncio.create_subprocess_exec(
            binary,
            "-y",
            "-loglevel",
            "error",
            "-i",
            str(video_path),
            "-i",
            str(audio_path),
            "-map",
            "0:v",
            "-map",
            "1:a",
            "-c:v",
            "copy",
            "-c:a",
            "copy",
            str(out_path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            logger.warning(f"[LIVE][RECORDER] ffmpeg mux failed: {stderr.decode(errors='replace').strip()}")
            out_path.unlink(missing_ok=True)
            return None
        return out_path


class RecordingSink:
    def __init__(
        self,
        stream: MediaStream,
        *,
        kinds: RecordingKinds = "audio",
        backend: RecorderBackend | None = None,
    ) -> None:
        self._stream = stream
        self._kinds = kinds
        self._backend = backend or WavFileRecorder()
        self._status = RecordingStatus.IDLE
        self._copy: MediaStream | None = None
        self._url: str | None = None

    @property
    def status(self) -> RecordingStatus:
        return self._status

    @property
    def url(self) -> str | None:
        """Reference to the last finished recording."""
        return self._url

    def start(self) -> None:
        if self._status is not RecordingStatus.IDLE:
            logger.debug("[LIVE][RECORDER] start ignored; status=%s", self._status.value)
            return
        if not self._stream.active:
            logger.warning("[LIVE][RECORDER] could not start: stream has no live tracks")
            return

        selected: tuple = ("audio", "video") if self._kinds == "audio+video" else ("audio",)
        if "video" in selected and not self._backend.supports_video:
            logger.warning("[LIVE][RECORDER] backend cannot record video; recording audio only")
            selected = ("audio",)

        copy = self._stream.clone(selected)
        if not copy.get_tracks():
            logger.warning("[LIVE][RECORDER] could not start: no %s tracks to record", self._kinds)
            return

        self._url = None
        self._copy = copy
        try:
            self._backend.start(copy)
        except Exception:
            copy.stop()
            self._copy = None
            logger.exception("[LIVE][RECORDER] error starting recording")
            return
        self._status = RecordingStatus.RECORDING
        logger.info("[LIVE][RECORDER] recording started kinds=%s", "+".join(selected))

    def pause(self) -> None:
        if self._status is RecordingStatus.RECORDING:
            self._backend.pause()
            self._status = RecordingStatus.PAUSED

    def resume(self) -> None:
        if self._status is RecordingStatus.PAUSED:
            self._backend.resume()
            self._status = RecordingStatus.RECORDING

    async def stop(self, timeout: float = 1.0) -> str | None:
        """
        Stop recording and wait for the finished file.

        Args:
            timeout: Seconds to wait for the backend to finalize.

        Returns:
            URL of the recording, or None if nothing was recorded or
            finalizing timed out.
        """
        if self._status is RecordingStatus.IDLE:
            return self._url

        self._status = RecordingStatus.IDLE
        try:
            self._url = await asyncio.wait_for(self._backend.finalize(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[LIVE][RECORDER] finalize timed out after {timeout:.1f}s")
            self._url = None
        finally:
            self.release()

        logger.info(f"[LIVE][RECORDER] recording stopped url={self._url}")
        return self._url

    def release(self) -> None:
        """Stop the dedicated track copies. The borrowed stream is untouched."""
        copy, self._copy = self._copy, None
        if copy is not None:
            copy.stop()
