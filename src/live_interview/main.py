"""
Main entry point for the Live Interview application.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from docx import Document
from google import genai

from live_interview.audio.media import AudioIOConfig, MediaStream, VideoIOConfig, open_camera, open_microphone
from live_interview.config import Settings, get_settings
from live_interview.errors import ErrorDetails, LiveSessionError
from live_interview.evaluation.feedback import FeedbackGenerator
from live_interview.session.chat import ChatInterview
from live_interview.session.controller import SessionController, SessionObserver, create_session_controller
from live_interview.session.retry import RetryPolicy, RetryState
from live_interview.session.schemas import (
    InterviewResult,
    InterviewSettings,
    SessionState,
    SessionStatus,
    TranscriptTurn,
)

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _flag(v: str) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _read_docx(file_path: Path) -> str:
    doc = Document(str(file_path))
    paragraphs = [para.text for para in doc.paragraphs if para.text.strip()]
    return "\n".join(paragraphs)


def load_job_description(args: argparse.Namespace) -> str:
    """Job description from ``--job-text`` or ``--job-file`` (.txt, .md, .docx)."""
    if args.job_text:
        return args.job_text.strip()
    if not args.job_file:
        return ""

    path = Path(args.job_file)
    if not path.exists():
        raise FileNotFoundError(f"Job description file not found: {path}")
    if path.suffix.lower() == ".docx":
        return _read_docx(path).strip()
    return path.read_text(encoding="utf-8").strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="live-interview", description="Run a live mock interview")
    p.add_argument(
        "--candidate",
        default=os.getenv("LIVE_INTERVIEW_CANDIDATE", "Candidate"),
        help="Candidate name used in the greeting (default: LIVE_INTERVIEW_CANDIDATE or 'Candidate')",
    )
    p.add_argument(
        "--position",
        default=os.getenv("LIVE_INTERVIEW_POSITION"),
        help="Role title being interviewed for (default: LIVE_INTERVIEW_POSITION)",
    )

    g = p.add_mutually_exclusive_group()
    g.add_argument("--job-file", help="Path to a job description file (.txt, .md, .docx)")
    g.add_argument("--job-text", help="Job description text")

    p.add_argument(
        "--difficulty",
        default=os.getenv("LIVE_INTERVIEW_DIFFICULTY", "Medium"),
        choices=["Easy", "Medium", "Hard"],
        help="Interview difficulty (default: LIVE_INTERVIEW_DIFFICULTY or 'Medium')",
    )
    p.add_argument(
        "--language",
        default=os.getenv("LIVE_INTERVIEW_LANGUAGE", "en-US"),
        help="Interview language code (default: LIVE_INTERVIEW_LANGUAGE or 'en-US')",
    )
    p.add_argument(
        "--model",
        default=os.getenv("LIVE_INTERVIEW_MODEL"),
        help="Model override (default: LIVE_INTERVIEW_MODEL, else the configured live or chat model)",
    )
    p.add_argument(
        "--voice",
        default=os.getenv("LIVE_INTERVIEW_VOICE"),
        help="Prebuilt interviewer voice (default: LIVE_INTERVIEW_VOICE or VOICE_NAME setting)",
    )
    p.add_argument(
        "--mode",
        default=os.getenv("LIVE_INTERVIEW_MODE", "audio"),
        choices=["audio", "video", "chat"],
        help="Spoken, spoken with camera recording, or text interview (default: LIVE_INTERVIEW_MODE or 'audio')",
    )
    p.add_argument(
        "--record",
        default=os.getenv("LIVE_INTERVIEW_RECORD", "true"),
        help="Record the interview locally (default: LIVE_INTERVIEW_RECORD or true)",
    )
    p.add_argument(
        "--feedback",
        default=os.getenv("LIVE_INTERVIEW_FEEDBACK", "false"),
        help="Generate feedback after the interview (default: LIVE_INTERVIEW_FEEDBACK or false)",
    )
    p.add_argument("--device", default=None, help="Input device index or name")
    p.add_argument(
        "--camera",
        type=int,
        default=int(os.getenv("LIVE_INTERVIEW_CAMERA", "0")),
        help="Camera index for video mode (default: LIVE_INTERVIEW_CAMERA or 0)",
    )
    return p


def build_interview_settings(args: argparse.Namespace, app_settings: Settings) -> InterviewSettings:
    if not args.position:
        raise ValueError("A position is required (--position or LIVE_INTERVIEW_POSITION)")
    default_model = app_settings.chat_model if args.mode == "chat" else app_settings.live_model
    return InterviewSettings(
        candidate_name=args.candidate,
        position=args.position,
        job_description=load_job_description(args),
        difficulty=args.difficulty,
        language=args.language,
        model=args.model or default_model,
        voice_name=args.voice or app_settings.voice_name,
        mode=args.mode,
    )


def _retry_policy(app_settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=app_settings.connect_max_retries,
        base_delay_s=app_settings.connect_retry_base_delay_s,
    )


class ConsoleObserver(SessionObserver):
    """Prints session progress to the terminal."""

    def __init__(self) -> None:
        self.failed = asyncio.Event()

    def on_status(self, status: SessionStatus) -> None:
        print(f"[{status.value}]")

    def on_turn(self, turn: TranscriptTurn) -> None:
        print(turn.render())

    def on_retry(self, state: RetryState, message: str) -> None:
        print(message)

    def on_error(self, details: ErrorDetails) -> None:
        print(f"Error: {details.message}")
        self.failed.set()


async def _command_loop(controller: SessionController, observer: ConsoleObserver) -> None:
    """'m' toggles mute, an empty line ends the interview."""
    while controller.state is SessionState.OPEN:
        read = asyncio.create_task(asyncio.to_thread(input))
        failed = asyncio.create_task(observer.failed.wait())
        done, _ = await asyncio.wait({read, failed}, return_when=asyncio.FIRST_COMPLETED)
        if failed in done:
            read.cancel()
            print("Press Enter to exit.")
            return
        failed.cancel()

        try:
            line = read.result()
        except EOFError:
            return
        cmd = line.strip().lower()
        if not cmd:
            return
        if cmd == "m":
            print("Microphone muted." if controller.toggle_mute() else "Microphone unmuted.")
        else:
            print("Commands: 'm' + Enter toggles mute, Enter ends the interview.")


async def run_audio_interview(args: argparse.Namespace, interview: InterviewSettings, app_settings: Settings) -> InterviewResult:
    device = args.device
    if device is not None and device.isdigit():
        device = int(device)
    stream, mic = await open_microphone(AudioIOConfig(device=device))
    camera = None
    try:
        if interview.mode == "video":
            video_track, camera = await open_camera(VideoIOConfig(device=args.camera, fps=app_settings.video_fps))
            stream = MediaStream(stream.get_tracks() + [video_track])
        observer = ConsoleObserver()
        controller = create_session_controller(
            interview,
            stream,
            app_settings=app_settings,
            observer=observer,
            record=_flag(args.record),
        )
        state = await controller.start()
        if state is SessionState.OPEN:
            print("Interview started. Type 'm' + Enter to toggle mute, press Enter to end.")
            await _command_loop(controller, observer)
        return await controller.end()
    finally:
        if camera is not None:
            await camera.close()
        await mic.close()


async def run_chat_interview(interview: InterviewSettings, client: genai.Client, app_settings: Settings) -> str:
    chat = ChatInterview(
        interview,
        client,
        retry_policy=_retry_policy(app_settings),
        on_retry=lambda state, details: print(state.describe()),
    )
    print(f"Interviewer: {await chat.start()}")
    print("Type your answers. An empty line ends the interview.")
    while True:
        try:
            message = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break
        if not message.strip():
            break
        print(f"Interviewer: {await chat.send(message)}")
    return chat.transcript()


async def run_interview(argv: list[str] | None = None) -> int:
    """
    Run one interview from the command line.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    app_settings = get_settings()
    interview = build_interview_settings(args, app_settings)

    if not app_settings.gemini_api_key:
        print("API key is not configured. Set GEMINI_API_KEY to start the interview.")
        return 1
    client = genai.Client(api_key=app_settings.gemini_api_key)

    logger.info(f"Starting {interview.mode} interview for position: {interview.position}")
    if interview.mode == "chat":
        transcript = await run_chat_interview(interview, client, app_settings)
    else:
        result = await run_audio_interview(args, interview, app_settings)
        transcript = result.transcript
        if result.media_url:
            print(f"Recording: {result.media_url}")
        if result.error is not None:
            return 1

    print("\n--- Transcript ---")
    print(transcript or "(empty)")

    if _flag(args.feedback) and transcript.strip():
        generator = FeedbackGenerator(
            client,
            model=app_settings.evaluation_model,
            retry_policy=_retry_policy(app_settings),
        )
        report = await generator.generate(transcript, interview)
        print("\n--- Feedback ---")
        print(report.model_dump_json(indent=2))
    return 0


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        code = asyncio.run(run_interview(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nInterview session terminated by user.")
        sys.exit(0)
    except LiveSessionError as e:
        print(f"Error: {e.details.message}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
