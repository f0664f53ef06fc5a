"""
Evaluation module: structured feedback on finished interviews.
"""

from live_interview.evaluation.feedback import (
    FeedbackError,
    FeedbackGenerator,
    FeedbackMetric,
    FeedbackReport,
    build_feedback_prompt,
)

__all__ = [
    "FeedbackError",
    "FeedbackGenerator",
    "FeedbackMetric",
    "FeedbackReport",
    "build_feedback_prompt",
]
