"""
Text-only interview.

Same interviewer persona as the live session, over the request/response
chat API. Every message is its own top-level operation with a fresh retry
budget.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from google.genai import types

from live_interview.session.prompts import CHAT_START_MESSAGE, build_system_instruction
from live_interview.session.retry import RetryCallback, RetryPolicy, retry_rate_limited
from live_interview.session.schemas import InterviewSettings, Speaker, TranscriptTurn
from live_interview.session.transcript import TranscriptLog

logger = logging.getLogger(__name__)


class ChatInterview:
    def __init__(
        self,
        settings: InterviewSettings,
        client: Any,
        *,
        model: str | None = None,
        retry_policy: RetryPolicy | None = None,
        on_retry: RetryCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            settings: Interview settings; ``settings.model`` is used unless
                ``model`` is given.
            client: A ``google.genai.Client`` (or anything exposing
                ``aio.chats.create``).
            model: Text model override.
            retry_policy: Rate-limit retry policy for each message.
            on_retry: Retry narration hook.
            sleep: Backoff sleep.
        """
        self.settings = settings
        self._client = client
        self._model = model or settings.model
        self._retry_policy = retry_policy or RetryPolicy()
        self._on_retry = on_retry
        self._sleep = sleep
        self._chat = None
        self._log = TranscriptLog()

    @property
    def started(self) -> bool:
        return self._chat is not None

    async def start(self) -> str:
        """Open the chat and return the interviewer's first message."""
        if self._chat is not None:
            raise RuntimeError("Chat interview already started")
        self._chat = self._client.aio.chats.create(
            model=self._model,
            config=types.GenerateContentConfig(
                system_instruction=build_system_instruction(self.settings),
            ),
        )
        logger.info(f"Chat interview started: model={self._model} position={self.settings.position}")
        reply = await self._send(CHAT_START_MESSAGE)
        self._log.append(TranscriptTurn(speaker=Speaker.INTERVIEWER, text=reply))
        return reply

    async def send(self, message: str) -> str:
        """
        Send one candidate message.

        Returns:
            The interviewer's reply.

        Raises:
            RuntimeError: If ``start()`` was not called.
            ValueError: If the message is empty.
            LiveSessionError: If the call fails after retries.
        """
        if self._chat is None:
            raise RuntimeError("Chat interview not started")
        text = message.strip()
        if not text:
            raise ValueError("Message must not be empty")

        reply = await self._send(text)
        self._log.append(TranscriptTurn(speaker=Speaker.CANDIDATE, text=text))
        self._log.append(TranscriptTurn(speaker=Speaker.INTERVIEWER, text=reply))
        return reply

    def transcript(self) -> str:
        return self._log.render()

    @property
    def turns(self) -> list[TranscriptTurn]:
        return self._log.turns

    async def _send(self, message: str) -> str:
        chat = self._chat

        async def _call() -> str:
            response = await chat.send_message(message)
            return (response.text or "").strip()

        return await retry_rate_limited(
            _call,
            policy=self._retry_policy,
            operation_name="chat message",
            on_retry=self._on_retry,
            sleep=self._sleep,
        )
