"""
Pydantic schemas for the session module.

Defines data models for interview settings, transcript turns, session
lifecycle and the artifacts handed back to the caller.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from live_interview.errors import ErrorKind

InterviewDifficulty = Literal["Easy", "Medium", "Hard"]
InterviewMode = Literal["audio", "video", "chat"]


class Speaker(str, Enum):
    """Who produced a piece of the transcript."""

    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class SessionState(str, Enum):
    """Lifecycle of one interview attempt."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    ENDING = "ending"
    CLOSED = "closed"
    ERROR = "error"


class SessionStatus(str, Enum):
    """Coarse status shown to the user."""

    CONNECTING = "connecting"
    THINKING = "thinking"
    LISTENING = "listening"
    SPEAKING = "speaking"
    ERROR = "error"
    ENDED = "ended"


class TranscriptFragment(BaseModel):
    """An incremental piece of transcription from either side."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    is_final: bool = False


class TranscriptTurn(BaseModel):
    """One finalized utterance attributed to a single speaker."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str

    def render(self) -> str:
        return f"{self.speaker.label}: {self.text}"


class InterviewSettings(BaseModel):
    """Configuration supplied by the setup screen for one interview."""

    candidate_name: str = Field(default="Candidate", description="Name used in the greeting")
    position: str = Field(..., description="Role title being interviewed for")
    job_description: str = Field(default="", description="Free-text job description")
    difficulty: InterviewDifficulty = Field(default="Medium", description="Interview difficulty")
    language: str = Field(default="en-US", description="BCP-47 language tag")
    model: str = Field(
        default="gemini-2.5-flash-native-audio-preview-09-2025",
        description="Model identifier selected by the user",
    )
    voice_name: str = Field(default="Zephyr", description="Prebuilt synthetic voice")
    mode: InterviewMode = Field(default="audio", description="Interview modality")
    opening_line: str | None = Field(
        default=None,
        description="Exact first sentence the interviewer is asked to say",
    )

    @property
    def records_media(self) -> bool:
        return self.mode in ("audio", "video")


class ErrorInfo(BaseModel):
    """Serializable form of a classified error."""

    kind: ErrorKind
    message: str


class InterviewResult(BaseModel):
    """Artifacts handed back when an interview ends."""

    transcript: str = Field(default="", description="Speaker-labeled, turn-ordered transcript")
    media_url: str | None = Field(default=None, description="Reference to the finished recording")
    state: SessionState = Field(default=SessionState.CLOSED, description="Final session state")
    error: ErrorInfo | None = Field(default=None, description="Terminal error, if any")
