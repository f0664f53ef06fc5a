"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI provider
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
        description="API key for the Gemini API",
    )
    live_model: str = Field(
        default="gemini-2.5-flash-native-audio-preview-09-2025",
        description="Model used for real-time voice interviews",
    )
    chat_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used for chat (text-only) interviews",
    )
    evaluation_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used to generate interview feedback",
    )
    voice_name: str = Field(
        default="Zephyr",
        description="Prebuilt synthetic voice for the interviewer",
    )

    # Live session
    frame_samples: int = Field(
        default=4096,
        description="Number of capture samples per outbound audio frame",
    )
    send_queue_size: int = Field(
        default=8,
        description="Outbound frames buffered before new frames are dropped",
    )
    event_queue_size: int = Field(
        default=256,
        description="Inbound transport events buffered before the receiver waits",
    )
    ready_timeout_s: float = Field(
        default=30.0,
        description="Seconds to wait for the remote session to become ready",
    )

    # Retry policy for session establishment, chat turns and feedback
    connect_max_retries: int = Field(
        default=3,
        description="Retries after a rate-limited failure before giving up",
    )
    connect_retry_base_delay_s: float = Field(
        default=30.0,
        description="Backoff step in seconds; retry N waits N times this value",
    )

    # Recording
    recordings_dir: str = Field(
        default="data/recordings",
        description="Directory for finished interview recordings",
    )
    recorder_finalize_timeout_s: float = Field(
        default=1.0,
        description="Seconds to wait for the recorder to finalize on teardown",
    )
    video_finalize_timeout_s: float = Field(
        default=10.0,
        description="Finalize timeout used instead when the recording includes video",
    )
    video_fps: float = Field(
        default=15.0,
        description="Camera frame rate for video interviews",
    )
    ffmpeg_binary: str = Field(
        default="ffmpeg",
        description="ffmpeg executable used to mux camera video with microphone audio",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
