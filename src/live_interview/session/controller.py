"""Live interview session (glue layer).

This module orchestrates:
mic -> capture encoder -> transport -> playback / transcript / status

It owns the session state machine, the single consumer of transport events,
the status surface shown to the user and the ordered teardown. Interview
content lives in the system instruction; nothing here interprets it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from live_interview.audio.capture import AudioCaptureEncoder
from live_interview.audio.codec import pcm16_to_float, silent_frame
from live_interview.audio.media import MediaStream
from live_interview.audio.output import AudioOutput, SoundDeviceOutput
from live_interview.audio.playback import PlaybackScheduler
from live_interview.config import Settings, get_settings
from live_interview.errors import (
    DEVICE_MESSAGE,
    DeviceUnavailableError,
    ErrorDetails,
    ErrorKind,
    InvalidTransitionError,
    LiveSessionError,
    describe_error,
)
from live_interview.recording.sink import RecordingSink, VideoFileRecorder, WavFileRecorder
from live_interview.session.prompts import build_system_instruction
from live_interview.session.retry import RetryPolicy, RetryState, retry_rate_limited
from live_interview.session.schemas import (
    ErrorInfo,
    InterviewResult,
    InterviewSettings,
    SessionState,
    SessionStatus,
    TranscriptTurn,
)
from live_interview.session.transcript import TranscriptAggregator, TranscriptLog
from live_interview.transport.base import LiveConnectConfig, TransportSession
from live_interview.transport.events import (
    AudioChunk,
    Closed,
    Interrupted,
    Ready,
    TranscriptEvent,
    TransportError,
    TransportEvent,
    TurnComplete,
)
from live_interview.transport.gemini_live import GeminiLiveTransport

logger = logging.getLogger(__name__)

READY_TIMEOUT_MESSAGE = "The AI service did not respond in time. Please try again."

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CONNECTING, SessionState.ENDING, SessionState.ERROR}),
    SessionState.CONNECTING: frozenset({SessionState.OPEN, SessionState.ENDING, SessionState.ERROR}),
    SessionState.OPEN: frozenset({SessionState.ENDING, SessionState.ERROR}),
    SessionState.ENDING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
    SessionState.ERROR: frozenset(),
}


@dataclass(frozen=True)
class SessionConfig:
    kick_frame_samples: int = 160
    ready_timeout_s: float = 30.0
    recorder_finalize_timeout_s: float = 1.0
    transport_close_timeout_s: float = 2.0


class SessionObserver:
    """Receives UI-facing notifications. Override the hooks you need."""

    def on_state(self, state: SessionState) -> None:
        pass

    def on_status(self, status: SessionStatus) -> None:
        pass

    def on_caption(self, text: str) -> None:
        pass

    def on_turn(self, turn: TranscriptTurn) -> None:
        pass

    def on_retry(self, state: RetryState, message: str) -> None:
        pass

    def on_error(self, details: ErrorDetails) -> None:
        pass

    def on_ended(self, result: InterviewResult) -> None:
        pass


class SessionController:
    """
    One live interview attempt.

    The capture encoder and the playback scheduler report back through
    ``handle_capture_closed`` and ``handle_playback_activity``; wire them to
    this controller when constructing them (``create_session_controller``
    does this for the real components).
    """

    def __init__(
        self,
        settings: InterviewSettings,
        *,
        transport: TransportSession,
        playback: PlaybackScheduler,
        capture: AudioCaptureEncoder | None = None,
        recorder: RecordingSink | None = None,
        output: AudioOutput | None = None,
        observer: SessionObserver | None = None,
        retry_policy: RetryPolicy | None = None,
        config: SessionConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._playback = playback
        self._capture = capture
        self._recorder = recorder
        self._output = output
        self._observer = observer or SessionObserver()
        self._retry_policy = retry_policy or RetryPolicy()
        self._config = config or SessionConfig()
        self._sleep = sleep

        self._state = SessionState.IDLE
        self._status = SessionStatus.CONNECTING
        self._muted = False
        self._heard_reply = False
        self._error: ErrorDetails | None = None

        self._log = TranscriptLog()
        self._aggregator = TranscriptAggregator(self._log)

        self._settled = asyncio.Event()
        self._connect_task: asyncio.Task | None = None
        self._pump_task: asyncio.Task | None = None
        self._ending = False
        self._ended = asyncio.Event()
        self._result: InterviewResult | None = None

    # ---- read-only surface ---------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def error(self) -> ErrorDetails | None:
        return self._error

    @property
    def transcript(self) -> TranscriptLog:
        return self._log

    @property
    def caption(self) -> str:
        return self._aggregator.caption

    @property
    def result(self) -> InterviewResult | None:
        return self._result

    @property
    def capture(self) -> AudioCaptureEncoder | None:
        return self._capture

    @property
    def playback(self) -> PlaybackScheduler:
        return self._playback

    @property
    def recorder(self) -> RecordingSink | None:
        return self._recorder

    # ---- lifecycle ------------------------------------------------------

    async def start(self) -> SessionState:
        """
        Connect and wait until the session is open or has failed.

        Returns:
            The state reached: ``OPEN``, ``ERROR``, or ``ENDING``/``CLOSED``
            when ``end()`` was called while connecting.
        """
        if self._state is not SessionState.IDLE:
            raise InvalidTransitionError(f"start() called in state {self._state.value}")

        if self._recorder is not None:
            self._recorder.start()
        if self._capture is not None:
            self._capture.attach()
        self._transition(SessionState.CONNECTING)

        connect_config = LiveConnectConfig(
            model=self.settings.model,
            system_instruction=build_system_instruction(self.settings),
            voice_name=self.settings.voice_name,
            language_code=self.settings.language,
        )
        self._connect_task = asyncio.create_task(
            retry_rate_limited(
                lambda: self._transport.connect(connect_config),
                policy=self._retry_policy,
                operation_name="live connect",
                on_retry=self._on_retry,
                sleep=self._sleep,
            )
        )
        try:
            await self._connect_task
        except asyncio.CancelledError:
            if self._ending:
                logger.info("[LIVE] connect aborted by end()")
                return self._state
            if self._state is SessionState.ERROR:
                logger.info("[LIVE] connect aborted by session error")
                return self._state
            raise
        except LiveSessionError as e:
            self._fail(e.details)
            return self._state

        if self._state is not SessionState.CONNECTING:
            # Ended or failed while the connect was in flight.
            self._close_transport()
            return self._state

        self._pump_task = asyncio.create_task(self._pump())
        try:
            await asyncio.wait_for(self._settled.wait(), timeout=self._config.ready_timeout_s)
        except asyncio.TimeoutError:
            logger.error(f"[LIVE] session not ready after {self._config.ready_timeout_s:.1f}s")
            self._fail(ErrorDetails(ErrorKind.OTHER, READY_TIMEOUT_MESSAGE))
        return self._state

    async def end(self) -> InterviewResult:
        """
        Tear the session down and return the interview artifacts.

        Teardown order: stop capture, close the transport, flush playback,
        finalize the recorder, release tracks and the output device. Safe to
        call in any state; a second call returns the first result.
        """
        if self._result is not None:
            return self._result
        if self._ending:
            await self._ended.wait()
            if self._result is None:
                raise RuntimeError("Session ended without a result")
            return self._result

        self._ending = True
        if self._state is not SessionState.ERROR:
            self._transition(SessionState.ENDING)
        self._settled.set()
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()

        # 1. capture
        if self._capture is not None:
            self._capture.stop()
        # 2. transport
        self._close_transport()
        # 3. playback
        self._playback.flush()
        # 4. recorder
        media_url = None
        if self._recorder is not None:
            try:
                media_url = await self._recorder.stop(timeout=self._config.recorder_finalize_timeout_s)
            except Exception as e:
                logger.error(f"[LIVE][RECORDER] finalize failed: {e}")
        # 5. tracks and output device
        if self._capture is not None:
            self._capture.release()
        if self._recorder is not None:
            self._recorder.release()
        if self._output is not None:
            try:
                self._output.close()
            except Exception as e:
                logger.warning(f"[LIVE][AUDIO] error closing output: {e}")

        await self._await_transport_closed()
        await self._stop_pump()

        for turn in self._aggregator.flush_pending():
            self._observer.on_turn(turn)
        if self._state is SessionState.ENDING:
            self._transition(SessionState.CLOSED)
        self._update_status()

        error = self._error
        self._result = InterviewResult(
            transcript=self._log.render(),
            media_url=media_url,
            state=self._state,
            error=ErrorInfo(kind=error.kind, message=error.message) if error else None,
        )
        logger.info(
            "[LIVE] session ended state=%s turns=%d media=%s",
            self._state.value,
            len(self._log),
            media_url,
        )
        self._ended.set()
        self._observer.on_ended(self._result)
        return self._result

    # ---- mute -----------------------------------------------------------

    def set_muted(self, muted: bool) -> None:
        if muted == self._muted:
            return
        self._muted = muted
        logger.info(f"[LIVE][AUDIO] microphone {'muted' if muted else 'unmuted'}")

    def toggle_mute(self) -> bool:
        self.set_muted(not self._muted)
        return self._muted

    # ---- collaborator callbacks -----------------------------------------

    def handle_playback_activity(self, active: bool) -> None:
        self._update_status()

    def handle_capture_closed(self, reason: str) -> None:
        if self._state not in (SessionState.CONNECTING, SessionState.OPEN):
            return
        logger.error(f"[LIVE][AUDIO] capture lost: {reason}")
        self._fail(DeviceUnavailableError(DEVICE_MESSAGE).details)

    # ---- event handling -------------------------------------------------

    async def _pump(self) -> None:
        async for event in self._transport.events():
            self.dispatch(event)

    def dispatch(self, event: TransportEvent) -> None:
        """Apply one transport event. Events are handled strictly in order."""
        if self._state not in (SessionState.CONNECTING, SessionState.OPEN):
            logger.debug(f"[LIVE] ignoring {type(event).__name__} in state {self._state.value}")
            return

        if isinstance(event, Ready):
            self._on_ready()
        elif isinstance(event, AudioChunk):
            self._on_audio(event)
        elif isinstance(event, TranscriptEvent):
            for turn in self._aggregator.append_fragment(event.fragment):
                self._observer.on_turn(turn)
            self._observer.on_caption(self._aggregator.caption)
        elif isinstance(event, TurnComplete):
            self._heard_reply = True
            for turn in self._aggregator.finalize_turn():
                self._observer.on_turn(turn)
            self._observer.on_caption("")
            self._update_status()
        elif isinstance(event, Interrupted):
            logger.info("[LIVE] interviewer interrupted by candidate")
            self._playback.flush()
            self._update_status()
        elif isinstance(event, TransportError):
            self._fail(describe_error(event.error))
        elif isinstance(event, Closed):
            reason = event.reason or "no reason given"
            self._fail(ErrorDetails(ErrorKind.OTHER, f"The connection to the AI service was closed ({reason})."))

    def _on_ready(self) -> None:
        if self._state is not SessionState.CONNECTING:
            return
        self._transition(SessionState.OPEN)
        self._settled.set()
        if self._capture is not None:
            self._capture.start_sending()
        # A short silent frame prompts the model to deliver its opening line.
        self._transport.send(silent_frame(self._config.kick_frame_samples))
        self._update_status()

    def _on_audio(self, event: AudioChunk) -> None:
        if self._state is not SessionState.OPEN:
            return
        try:
            samples = pcm16_to_float(event.data)
        except ValueError as e:
            logger.warning(f"[LIVE][AUDIO] undecodable audio chunk skipped: {e}")
            return
        if samples.size == 0:
            return
        self._heard_reply = True
        self._playback.enqueue(samples)
        self._update_status()

    def _on_retry(self, state: RetryState, details: ErrorDetails) -> None:
        self._observer.on_retry(state, state.describe())

    # ---- internals ------------------------------------------------------

    def _transition(self, new: SessionState) -> None:
        if new not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidTransitionError(f"{self._state.value} -> {new.value}")
        logger.info(f"[LIVE] state {self._state.value} -> {new.value}")
        self._state = new
        self._observer.on_state(new)
        self._update_status()

    def _fail(self, details: ErrorDetails) -> None:
        if self._state not in (SessionState.IDLE, SessionState.CONNECTING, SessionState.OPEN):
            logger.debug(f"[LIVE] error after close ignored: {details.message}")
            return
        self._error = details
        logger.error(f"[LIVE] session error ({details.kind.value}): {details.message}")
        self._transition(SessionState.ERROR)
        self._settled.set()
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._capture is not None:
            self._capture.stop()
        self._playback.flush()
        self._close_transport()
        self._observer.on_error(details)

    def _compute_status(self) -> SessionStatus:
        if self._state is SessionState.ERROR:
            return SessionStatus.ERROR
        if self._state is SessionState.CLOSED:
            return SessionStatus.ENDED
        if self._state in (SessionState.IDLE, SessionState.CONNECTING):
            return SessionStatus.CONNECTING
        if self._state is SessionState.ENDING:
            return self._status
        if self._playback.is_playing:
            return SessionStatus.SPEAKING
        if not self._heard_reply:
            return SessionStatus.THINKING
        return SessionStatus.LISTENING

    def _update_status(self) -> None:
        status = self._compute_status()
        if status is self._status:
            return
        self._status = status
        logger.debug(f"[LIVE] status {status.value}")
        self._observer.on_status(status)

    def _close_transport(self) -> None:
        try:
            self._transport.close()
        except Exception as e:
            logger.warning(f"[LIVE][TRANSPORT] close failed: {e}")

    async def _await_transport_closed(self) -> None:
        try:
            await asyncio.wait_for(
                self._transport.wait_closed(), timeout=self._config.transport_close_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("[LIVE][TRANSPORT] close did not complete in time")
        except Exception as e:
            logger.warning(f"[LIVE][TRANSPORT] error while closing: {e}")

    async def _stop_pump(self) -> None:
        task, self._pump_task = self._pump_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"[LIVE] event pump failed: {e}")


def create_session_controller(
    settings: InterviewSettings,
    stream: MediaStream,
    *,
    app_settings: Settings | None = None,
    observer: SessionObserver | None = None,
    output: AudioOutput | None = None,
    transport: TransportSession | None = None,
    record: bool = True,
) -> SessionController:
    """
    Wire the real components for one live interview.

    Args:
        settings: Interview settings from the setup screen.
        stream: Borrowed media stream; never stopped by the session.
        app_settings: Application settings (defaults to ``get_settings()``).
        observer: UI hooks.
        output: Audio output device (defaults to ``SoundDeviceOutput``).
        transport: Transport override (defaults to ``GeminiLiveTransport``).
        record: Record the interview locally.

    Raises:
        DeviceUnavailableError: If the stream carries no live audio track.
        ValueError: If no API key is configured.
    """
    app_settings = app_settings or get_settings()
    tracks = [t for t in stream.get_audio_tracks() if t.ready_state == "live"]
    if not tracks:
        raise DeviceUnavailableError()

    if transport is None:
        transport = GeminiLiveTransport(
            api_key=app_settings.gemini_api_key,
            send_queue_size=app_settings.send_queue_size,
            event_queue_size=app_settings.event_queue_size,
        )
    if output is None:
        output = SoundDeviceOutput()

    controller: SessionController
    capture = AudioCaptureEncoder(
        tracks[0],
        send=transport.send,
        is_muted=lambda: controller.muted,
        on_closed=lambda reason: controller.handle_capture_closed(reason),
        frame_samples=app_settings.frame_samples,
    )
    playback = PlaybackScheduler(
        output,
        clock=time.monotonic,
        on_activity=lambda active: controller.handle_playback_activity(active),
    )
    recorder = None
    finalize_timeout_s = app_settings.recorder_finalize_timeout_s
    if record and settings.records_media:
        if settings.mode == "video":
            backend = VideoFileRecorder(
                app_settings.recordings_dir,
                fps=app_settings.video_fps,
                ffmpeg=app_settings.ffmpeg_binary,
            )
            finalize_timeout_s = app_settings.video_finalize_timeout_s
            recorder = RecordingSink(stream, kinds="audio+video", backend=backend)
        else:
            recorder = RecordingSink(stream, kinds="audio", backend=WavFileRecorder(app_settings.recordings_dir))

    controller = SessionController(
        settings,
        transport=transport,
        playback=playback,
        capture=capture,
        recorder=recorder,
        output=output,
        observer=observer,
        retry_policy=RetryPolicy(
            max_retries=app_settings.connect_max_retries,
            base_delay_s=app_settings.connect_retry_base_delay_s,
        ),
        config=SessionConfig(
            ready_timeout_s=app_settings.ready_timeout_s,
            recorder_finalize_timeout_s=finalize_timeout_s,
        ),
    )
    return controller
