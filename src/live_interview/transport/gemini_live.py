"""
Gemini Live transport.

Uses the ``google-genai`` async live API:

- ``client.aio.live.connect`` to establish the session
- ``send_realtime_input(audio=Blob(...))`` for outbound 16 kHz PCM frames
- ``receive()`` for server messages (audio, transcriptions, turn signals)

Outbound frames pass through a small bounded queue drained by one sender
task, so send order equals capture order and a stalled connection drops
frames instead of buffering them without limit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from live_interview.audio.codec import AudioFrame
from live_interview.transport.base import LiveConnectConfig, TransportSession
from live_interview.transport.events import Closed, Ready, TransportError, TransportEvent, parse_server_message

logger = logging.getLogger(__name__)


def build_live_config(config: LiveConnectConfig) -> types.LiveConnectConfig:
    """Translate our connect parameters into the SDK's config object."""
    speech_kwargs: dict[str, Any] = {
        "voice_config": types.VoiceConfig(
            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice_name)
        )
    }
    if config.language_code:
        speech_kwargs["language_code"] = config.language_code

    kwargs: dict[str, Any] = {
        "response_modalities": [config.response_modality],
        "system_instruction": config.system_instruction,
        "speech_config": types.SpeechConfig(**speech_kwargs),
    }
    if config.input_transcription:
        kwargs["input_audio_transcription"] = types.AudioTranscriptionConfig()
    if config.output_transcription:
        kwargs["output_audio_transcription"] = types.AudioTranscriptionConfig()
    return types.LiveConnectConfig(**kwargs)


class GeminiLiveTransport(TransportSession):
    def __init__(
        self,
        *,
        api_key: str | None = None,
        client: genai.Client | None = None,
        send_queue_size: int = 8,
        event_queue_size: int = 256,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("API key is not configured. Set GEMINI_API_KEY to start the interview.")
            client = genai.Client(api_key=api_key)
        self._client = client
        self._send_queue_size = send_queue_size
        self._events: asyncio.Queue[TransportEvent] = asyncio.Queue(maxsize=event_queue_size)
        self._frames: asyncio.Queue[AudioFrame] = asyncio.Queue(maxsize=send_queue_size)

        self._session_cm = None
        self._session = None
        self._receive_task: asyncio.Task | None = None
        self._send_task: asyncio.Task | None = None
        self._close_task: asyncio.Task | None = None
        self._ready = False
        self._closing = False
        self._closed_emitted = False

        self.frames_sent = 0
        self.frames_dropped = 0

    @property
    def is_ready(self) -> bool:
        return self._ready and not self._closing

    async def connect(self, config: LiveConnectConfig) -> None:
        if self._session is not None:
            raise RuntimeError("Transport is already connected")
        self._closing = False
        self._closed_emitted = False

        logger.info(f"[LIVE][TRANSPORT] connecting model={config.model}")
        cm = self._client.aio.live.connect(model=config.model, config=build_live_config(config))
        # Raises on rejected setup (auth, quota, rate limit); the caller classifies.
        session = await cm.__aenter__()
        if self._closing:
            await cm.__aexit__(None, None, None)
            logger.info("[LIVE][TRANSPORT] closed while connecting")
            return

        self._session_cm = cm
        self._session = session
        self._ready = True
        self._receive_task = asyncio.create_task(self._receive_loop(session))
        self._send_task = asyncio.create_task(self._send_loop(session))
        await self._events.put(Ready())
        logger.info("[LIVE][TRANSPORT] session ready")

    def send(self, frame: AudioFrame) -> bool:
        if not self.is_ready:
            self.frames_dropped += 1
            return False
        try:
            self._frames.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.debug("[LIVE][TRANSPORT] send queue full; frame dropped")
            return False
        return True

    async def events(self) -> AsyncIterator[TransportEvent]:
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, Closed):
                return

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._ready = False
        if self._send_task is not None:
            self._send_task.cancel()
        if self._receive_task is not None:
            self._receive_task.cancel()
        self._close_task = asyncio.create_task(self._release())

    async def wait_closed(self) -> None:
        if self._close_task is not None:
            await self._close_task

    async def _release(self) -> None:
        for task in (self._send_task, self._receive_task):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

        cm, self._session_cm = self._session_cm, None
        self._session = None
        if cm is not None:
            try:
                await cm.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"[LIVE][TRANSPORT] error while closing session: {e}")
        self._emit_closed("closed by client")
        logger.info(
            "[LIVE][TRANSPORT] closed sent=%d dropped=%d",
            self.frames_sent,
            self.frames_dropped,
        )

    def _emit_closed(self, reason: str) -> None:
        if self._closed_emitted:
            return
        self._closed_emitted = True
        try:
            self._events.put_nowait(Closed(reason))
        except asyncio.QueueFull:
            logger.warning("[LIVE][TRANSPORT] event queue full; close event not delivered")

    async def _send_loop(self, session) -> None:  # noqa: ANN001
        while True:
            frame = await self._frames.get()
            try:
                await session.send_realtime_input(
                    audio=types.Blob(data=frame.pcm_bytes, mime_type=frame.mime_type)
                )
                self.frames_sent += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The receive loop reports the connection failure.
                self.frames_dropped += 1
                logger.debug(f"[LIVE][TRANSPORT] send failed: {e}")

    async def _receive_loop(self, session) -> None:  # noqa: ANN001
        reason = "closed by remote"
        try:
            # receive() yields one model turn per iteration; keep listening across turns.
            while True:
                received = 0
                async for message in session.receive():
                    received += 1
                    for event in parse_server_message(message):
                        await self._events.put(event)
                if self._closing:
                    return
                if not received:
                    break
        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK as e:
            reason = f"closed by remote: {e}"
        except Exception as e:
            logger.error(f"[LIVE][TRANSPORT] receive failed: {e}")
            await self._events.put(TransportError(e))
            reason = "connection lost"
        self._ready = False
        self._emit_closed(reason)
