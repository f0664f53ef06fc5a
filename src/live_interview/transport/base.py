"""
Transport abstraction.

A transport owns the duplex connection to the remote conversational model.
It delivers events upward through one ordered channel and never reorders or
merges them.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from pydantic import BaseModel, Field

from live_interview.audio.codec import AudioFrame
from live_interview.transport.events import TransportEvent


class LiveConnectConfig(BaseModel):
    """Parameters for establishing a live session."""

    model: str = Field(..., description="Remote model identifier")
    system_instruction: str = Field(..., description="Persona, role, difficulty and job context")
    voice_name: str = Field(default="Zephyr", description="Prebuilt voice for synthesized speech")
    language_code: str | None = Field(default=None, description="BCP-47 language for speech output")
    response_modality: str = Field(default="AUDIO", description="Requested output modality")
    input_transcription: bool = Field(default=True, description="Transcribe the candidate's audio")
    output_transcription: bool = Field(default=True, description="Transcribe the model's audio")


class TransportSession(ABC):
    """Abstract base class for live transports."""

    @abstractmethod
    async def connect(self, config: LiveConnectConfig) -> None:
        """
        Establish the connection.

        Raises on failure; the caller classifies the exception. A ``Ready``
        event is queued once the remote accepts the session.
        """
        ...

    @abstractmethod
    def send(self, frame: AudioFrame) -> bool:
        """Queue one frame without blocking. Returns False if it was dropped."""
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[TransportEvent]:
        """Iterate events in arrival order until the session closes."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Request close. Returns immediately; see ``wait_closed``."""
        ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """Wait until the underlying connection is released."""
        ...

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        ...
