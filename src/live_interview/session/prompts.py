"""
System instruction for the AI interviewer.

The opening line is requested through the instruction only. Nothing in the
engine checks that the remote model actually said it.
"""

from live_interview.session.schemas import InterviewSettings

LANGUAGES: dict[str, str] = {
    "en-US": "English (United States)",
    "en-GB": "English (United Kingdom)",
    "es-ES": "Spanish (Spain)",
    "fr-FR": "French (France)",
    "de-DE": "German (Germany)",
    "it-IT": "Italian (Italy)",
    "ja-JP": "Japanese (Japan)",
    "ko-KR": "Korean (South Korea)",
    "pt-BR": "Portuguese (Brazil)",
    "ru-RU": "Russian (Russia)",
    "zh-CN": "Chinese (Mandarin, Simplified)",
    "hi-IN": "Hindi (India)",
    "ta-IN": "Tamil (India)",
    "te-IN": "Telugu (India)",
    "bn-IN": "Bengali (India)",
    "kn-IN": "Kannada (India)",
    "ml-IN": "Malayalam (India)",
    "mr-IN": "Marathi (India)",
    "gu-IN": "Gujarati (India)",
}

CHAT_START_MESSAGE = "Hello, I am ready to start the interview."


def language_name(code: str) -> str:
    return LANGUAGES.get(code, "English")


def opening_line(settings: InterviewSettings) -> str:
    """The exact sentence the interviewer is asked to open with."""
    if settings.opening_line:
        return settings.opening_line.strip()
    return (
        f"Hello {settings.candidate_name}, welcome to your interview "
        f"for the {settings.position} position."
    )


def build_system_instruction(settings: InterviewSettings) -> str:
    """
    Build the interviewer persona for one interview.

    Args:
        settings: Role, difficulty, job description and language.

    Returns:
        System instruction text sent when the session is established.
    """
    job = settings.job_description.strip() or "Not provided."
    return (
        f"You are an expert interviewer conducting a {settings.difficulty} level interview "
        f'for a "{settings.position}" role. The job description is: "{job}". '
        f'Your first sentence must be exactly: "{opening_line(settings)}" '
        "Then ask the first question. "
        "Keep your responses concise and focused on the interview. "
        f"Your language should be {language_name(settings.language)}. "
        "Do not use markdown. Ask one question at a time."
    )
