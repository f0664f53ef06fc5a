import asyncio
from types import SimpleNamespace

import numpy as np
import pytest

from live_interview.audio.codec import encode_frame
from live_interview.transport.base import LiveConnectConfig
from live_interview.transport.events import AudioChunk, Closed, Ready, TranscriptEvent, TransportError, TurnComplete
from live_interview.transport.gemini_live import GeminiLiveTransport, build_live_config

CONFIG = LiveConnectConfig(
    model="gemini-live-test",
    system_instruction="You are an interviewer.",
    voice_name="Zephyr",
    language_code="en-US",
)


class FakeSession:
    def __init__(self, turns=None, error: Exception | None = None, hold: bool = False) -> None:
        self._turns = list(turns or [])
        self._error = error
        self._hold = hold
        self.sent = []

    async def send_realtime_input(self, *, audio) -> None:
        self.sent.append(audio)

    async def receive(self):
        if self._error is not None:
            raise self._error
        if self._hold:
            await asyncio.Event().wait()
        if self._turns:
            for message in self._turns.pop(0):
                yield message


class FakeConnection:
    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.exited = False

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc) -> None:
        self.exited = True


class FakeLive:
    def __init__(self, session: FakeSession) -> None:
        self.connection = FakeConnection(session)
        self.connect_kwargs = None

    def connect(self, *, model, config):
        self.connect_kwargs = {"model": model, "config": config}
        return self.connection


def _client(session: FakeSession):
    return SimpleNamespace(aio=SimpleNamespace(live=FakeLive(session)))


def _content(**kwargs):
    return SimpleNamespace(server_content=SimpleNamespace(**kwargs))


async def _collect(transport: GeminiLiveTransport, timeout: float = 1.0) -> list:
    async def _run() -> list:
        return [event async for event in transport.events()]

    return await asyncio.wait_for(_run(), timeout=timeout)


def test_build_live_config():
    cfg = build_live_config(CONFIG)
    assert cfg.system_instruction is not None
    assert cfg.speech_config.voice_config.prebuilt_voice_config.voice_name == "Zephyr"
    assert cfg.speech_config.language_code == "en-US"
    assert cfg.input_audio_transcription is not None
    assert cfg.output_audio_transcription is not None


def test_missing_api_key_is_rejected():
    with pytest.raises(ValueError, match="API key"):
        GeminiLiveTransport(api_key="")


@pytest.mark.asyncio
async def test_receive_maps_server_messages_then_closes():
    turn = [
        _content(model_turn=SimpleNamespace(parts=[SimpleNamespace(inline_data=SimpleNamespace(data=b"\x00\x01", mime_type=None))])),
        _content(output_transcription=SimpleNamespace(text="Hello.", finished=False), turn_complete=True),
    ]
    session = FakeSession(turns=[turn])
    client = _client(session)
    transport = GeminiLiveTransport(client=client)

    await transport.connect(CONFIG)
    events = await _collect(transport)

    assert [type(e) for e in events] == [Ready, AudioChunk, TranscriptEvent, TurnComplete, Closed]
    assert events[-1].reason == "closed by remote"
    assert client.aio.live.connect_kwargs["model"] == "gemini-live-test"
    transport.close()
    await transport.wait_closed()


@pytest.mark.asyncio
async def test_receive_failure_becomes_error_then_closed():
    session = FakeSession(error=RuntimeError("1011 internal error"))
    transport = GeminiLiveTransport(client=_client(session))

    await transport.connect(CONFIG)
    events = await _collect(transport)

    assert isinstance(events[0], Ready)
    assert isinstance(events[1], TransportError)
    assert str(events[1].error) == "1011 internal error"
    assert events[-1] == Closed("connection lost")
    assert not transport.is_ready
    transport.close()
    await transport.wait_closed()


@pytest.mark.asyncio
async def test_frames_are_sent_in_order_and_close_releases_session():
    session = FakeSession(hold=True)
    client = _client(session)
    transport = GeminiLiveTransport(client=client)

    frames = [encode_frame(np.full(4, i / 10, dtype=np.float32)) for i in range(3)]
    assert transport.send(frames[0]) is False  # not connected yet

    await transport.connect(CONFIG)
    assert transport.is_ready
    for frame in frames:
        assert transport.send(frame) is True
    await asyncio.sleep(0.01)

    assert [blob.data for blob in session.sent] == [f.pcm_bytes for f in frames]
    assert session.sent[0].mime_type == "audio/pcm;rate=16000"

    transport.close()
    transport.close()
    await transport.wait_closed()

    assert client.aio.live.connection.exited
    assert not transport.is_ready
    events = await _collect(transport)
    assert events[-1] == Closed("closed by client")


@pytest.mark.asyncio
async def test_full_send_queue_drops_frames():
    session = FakeSession(hold=True)
    transport = GeminiLiveTransport(client=_client(session), send_queue_size=2)
    await transport.connect(CONFIG)

    frame = encode_frame(np.zeros(4, dtype=np.float32))
    results = [transport.send(frame) for _ in range(5)]

    assert results == [True, True, False, False, False]
    assert transport.frames_dropped == 3
    transport.close()
    await transport.wait_closed()
