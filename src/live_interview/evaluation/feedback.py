"""
Post-interview feedback.

Asks a text model for a structured assessment of a finished transcript and
validates the JSON it returns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Literal

from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from live_interview.errors import EVALUATION_QUOTA_MESSAGE
from live_interview.session.retry import RetryCallback, RetryPolicy, retry_rate_limited
from live_interview.session.schemas import InterviewSettings

logger = logging.getLogger(__name__)

Recommendation = Literal["Recommended for Hire", "Needs Improvement", "Not a Fit"]


class FeedbackMetric(BaseModel):
    """Rating of a single skill."""

    name: str = Field(
        ...,
        description='Name of the skill being assessed (e.g., "Clarity & Communication", "Technical Depth", "Problem-Solving").',
    )
    rating: int = Field(..., ge=1, le=10, description="A rating for this specific skill from 1 to 10.")
    reasoning: str = Field(default="", description="A brief, one-sentence reasoning for this skill rating.")


class FeedbackReport(BaseModel):
    """Structured assessment of one interview."""

    overall_rating: int = Field(..., ge=1, le=10, description="An overall rating for the candidate from 1 to 10.")
    overall_reasoning: str = Field(
        default="",
        description="A brief, one-sentence reasoning for the overall rating.",
    )
    recommendation: Recommendation = Field(..., description="A final hiring recommendation.")
    metrics: list[FeedbackMetric] = Field(default_factory=list, description="Per-skill ratings")
    strengths: list[str] = Field(
        default_factory=list,
        description="A list of 2-3 key strengths demonstrated by the candidate.",
    )
    areas_for_improvement: list[str] = Field(
        default_factory=list,
        description="A list of 2-3 specific, actionable areas for improvement.",
    )


class FeedbackError(Exception):
    """Raised when the model's feedback cannot be parsed."""


def build_feedback_prompt(transcript: str, settings: InterviewSettings) -> str:
    return (
        f'Analyze the interview transcript for a candidate applying for the "{settings.position}" role. '
        "Provide a detailed, graphical-friendly analysis. Transcript:\n"
        f"---\n{transcript}\n---"
    )


class FeedbackGenerator:
    def __init__(
        self,
        client: Any,
        *,
        model: str = "gemini-2.5-flash",
        retry_policy: RetryPolicy | None = None,
        on_retry: RetryCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._model = model
        self._retry_policy = retry_policy or RetryPolicy()
        self._on_retry = on_retry
        self._sleep = sleep

    async def generate(self, transcript: str, settings: InterviewSettings) -> FeedbackReport:
        """
        Generate feedback for a finished interview.

        Args:
            transcript: Rendered transcript ("Candidate: ..." / "Interviewer: ...").
            settings: Settings of the interview being assessed.

        Returns:
            Validated feedback report.

        Raises:
            ValueError: If the transcript is empty.
            LiveSessionError: If the model call fails after retries.
            FeedbackError: If the response is not a valid report.
        """
        if not transcript.strip():
            raise ValueError("Cannot generate feedback for an empty transcript")

        prompt = build_feedback_prompt(transcript, settings)
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=FeedbackReport,
        )

        async def _call() -> Any:
            return await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=config,
            )

        response = await retry_rate_limited(
            _call,
            policy=self._retry_policy,
            operation_name="feedback",
            on_retry=self._on_retry,
            sleep=self._sleep,
            quota_message=EVALUATION_QUOTA_MESSAGE,
        )

        text = (response.text or "").strip()
        try:
            report = FeedbackReport.model_validate_json(text)
        except ValidationError as e:
            logger.error(f"Feedback response failed validation: {e}")
            raise FeedbackError(f"Invalid feedback response: {e}") from e

        logger.info(
            f"Feedback generated: rating={report.overall_rating} recommendation={report.recommendation}"
        )
        return report
