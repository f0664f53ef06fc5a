import asyncio
import shutil
import wave
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import numpy as np
import pytest

from live_interview.audio.media import MediaStream, MediaTrack, TrackSource
from live_interview.recording.sink import RecordingSink, RecordingStatus, VideoFileRecorder, WavFileRecorder


class HangingBackend:
    """Backend whose finalize never completes."""

    supports_video = False

    def __init__(self) -> None:
        self.started_with = None

    def start(self, stream) -> None:
        self.started_with = stream

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    async def finalize(self):
        await asyncio.sleep(3600)


def _stream():
    source = TrackSource()
    track = MediaTrack(source, "audio")
    return source, track, MediaStream([track])


def _path(url: str) -> Path:
    return Path(url2pathname(urlparse(url).path))


@pytest.mark.asyncio
async def test_records_audio_to_wav_file(tmp_path):
    source, track, stream = _stream()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))

    sink.start()
    assert sink.status is RecordingStatus.RECORDING
    source.push(np.full(1600, 0.25, dtype=np.float32))
    source.push(np.full(1600, -0.25, dtype=np.float32))

    url = await sink.stop()

    assert url is not None and url.startswith("file://")
    path = _path(url)
    assert path.parent == tmp_path.resolve()
    with wave.open(str(path), "rb") as wf:
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 16000
        assert wf.getnframes() == 3200
    assert sink.status is RecordingStatus.IDLE
    assert sink.url == url


@pytest.mark.asyncio
async def test_stop_leaves_borrowed_tracks_running(tmp_path):
    source, track, stream = _stream()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))
    sink.start()
    assert source.attached == 2

    await sink.stop()

    assert source.attached == 1
    assert track.ready_state == "live"
    assert stream.active


@pytest.mark.asyncio
async def test_paused_blocks_are_not_recorded(tmp_path):
    source, _, stream = _stream()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))
    sink.start()
    source.push(np.zeros(100, dtype=np.float32))
    sink.pause()
    assert sink.status is RecordingStatus.PAUSED
    source.push(np.zeros(500, dtype=np.float32))
    sink.resume()
    source.push(np.zeros(100, dtype=np.float32))

    url = await sink.stop()
    with wave.open(str(_path(url)), "rb") as wf:
        assert wf.getnframes() == 200


@pytest.mark.asyncio
async def test_no_media_yields_no_url(tmp_path):
    _, _, stream = _stream()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))
    sink.start()
    assert await sink.stop() is None


@pytest.mark.asyncio
async def test_finalize_timeout_returns_none_and_releases(tmp_path):
    source, _, stream = _stream()
    backend = HangingBackend()
    sink = RecordingSink(stream, backend=backend)
    sink.start()

    url = await sink.stop(timeout=0.05)

    assert url is None
    assert source.attached == 1
    assert sink.status is RecordingStatus.IDLE


@pytest.mark.asyncio
async def test_start_and_stop_are_no_ops_out_of_state(tmp_path):
    source, _, stream = _stream()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))

    assert await sink.stop() is None
    sink.pause()
    assert sink.status is RecordingStatus.IDLE

    sink.start()
    sink.start()
    assert source.attached == 2


def test_start_on_inactive_stream_does_nothing(tmp_path):
    source, track, stream = _stream()
    track.stop()
    sink = RecordingSink(stream, backend=WavFileRecorder(tmp_path))
    sink.start()
    assert sink.status is RecordingStatus.IDLE


def test_video_request_falls_back_to_audio(tmp_path):
    source = TrackSource()
    audio = MediaTrack(source, "audio")
    video = MediaTrack(TrackSource(), "video")
    backend = HangingBackend()
    sink = RecordingSink(MediaStream([audio, video]), kinds="audio+video", backend=backend)

    sink.start()

    assert [t.kind for t in backend.started_with.get_tracks()] == ["audio"]


def _av_stream():
    mic = TrackSource()
    camera = TrackSource(sample_rate=15, label="camera")
    stream = MediaStream([MediaTrack(mic, "audio"), MediaTrack(camera, "video")])
    return mic, camera, stream


def _count_frames(path: Path) -> int:
    cv2 = pytest.importorskip("cv2")
    capture = cv2.VideoCapture(str(path))
    count = 0
    while True:
        ok, _ = capture.read()
        if not ok:
            break
        count += 1
    capture.release()
    return count


class TestVideoRecording:
    @pytest.mark.asyncio
    async def test_video_and_audio_without_ffmpeg_keeps_both_files(self, tmp_path):
        """Without ffmpeg the video file is returned and the WAV sits next to it."""
        pytest.importorskip("cv2")
        mic, camera, stream = _av_stream()
        backend = VideoFileRecorder(tmp_path, ffmpeg=None)
        sink = RecordingSink(stream, kinds="audio+video", backend=backend)

        sink.start()
        mic.push(np.full(1600, 0.1, dtype=np.float32))
        for i in range(3):
            camera.push(np.full((48, 64, 3), 40 * i, dtype=np.uint8))
        url = await sink.stop(timeout=5.0)

        path = _path(url)
        assert path.suffix == ".avi"
        assert backend.frames_written == 3
        assert _count_frames(path) == 3
        wavs = list(tmp_path.glob("*.wav"))
        assert len(wavs) == 1
        with wave.open(str(wavs[0]), "rb") as wf:
            assert wf.getnframes() == 1600

    @pytest.mark.asyncio
    async def test_frames_of_another_size_are_resized(self, tmp_path):
        pytest.importorskip("cv2")
        _, camera, stream = _av_stream()
        backend = VideoFileRecorder(tmp_path, ffmpeg=None)
        sink = RecordingSink(stream, kinds="audio+video", backend=backend)

        sink.start()
        camera.push(np.zeros((48, 64, 3), dtype=np.uint8))
        camera.push(np.zeros((96, 128, 3), dtype=np.uint8))
        camera.push(np.zeros((48, 64), dtype=np.uint8))
        url = await sink.stop(timeout=5.0)

        assert backend.frames_written == 3
        assert _count_frames(_path(url)) == 3

    @pytest.mark.asyncio
    async def test_paused_frames_are_not_written(self, tmp_path):
        pytest.importorskip("cv2")
        _, camera, stream = _av_stream()
        backend = VideoFileRecorder(tmp_path, ffmpeg=None)
        sink = RecordingSink(stream, kinds="audio+video", backend=backend)

        sink.start()
        camera.push(np.zeros((48, 64, 3), dtype=np.uint8))
        sink.pause()
        camera.push(np.zeros((48, 64, 3), dtype=np.uint8))
        sink.resume()
        camera.push(np.zeros((48, 64, 3), dtype=np.uint8))
        await sink.stop(timeout=5.0)

        assert backend.frames_written == 2

    @pytest.mark.asyncio
    async def test_no_frames_yields_the_audio_recording(self, tmp_path):
        pytest.importorskip("cv2")
        mic, _, stream = _av_stream()
        sink = RecordingSink(stream, kinds="audio+video", backend=VideoFileRecorder(tmp_path, ffmpeg=None))

        sink.start()
        mic.push(np.zeros(800, dtype=np.float32))
        url = await sink.stop(timeout=5.0)

        assert _path(url).suffix == ".wav"
        assert list(tmp_path.glob("*.avi")) == []

    @pytest.mark.asyncio
    async def test_stop_leaves_borrowed_camera_running(self, tmp_path):
        pytest.importorskip("cv2")
        _, camera, stream = _av_stream()
        sink = RecordingSink(stream, kinds="audio+video", backend=VideoFileRecorder(tmp_path, ffmpeg=None))
        sink.start()
        assert camera.attached == 2

        await sink.stop(timeout=5.0)

        assert camera.attached == 1
        assert stream.get_video_tracks()[0].ready_state == "live"

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
    async def test_ffmpeg_muxes_audio_into_one_file(self, tmp_path):
        pytest.importorskip("cv2")
        mic, camera, stream = _av_stream()
        sink = RecordingSink(stream, kinds="audio+video", backend=VideoFileRecorder(tmp_path))

        sink.start()
        mic.push(np.full(16000, 0.1, dtype=np.float32))
        for _ in range(15):
            camera.push(np.zeros((48, 64, 3), dtype=np.uint8))
        url = await sink.stop(timeout=30.0)

        path = _path(url)
        assert path.suffix == ".mkv"
        assert path.stat().st_size > 0
        assert [p.name for p in tmp_path.iterdir()] == [path.name]
