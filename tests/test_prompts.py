from live_interview.session.prompts import build_system_instruction, language_name, opening_line
from live_interview.session.schemas import InterviewSettings


def test_default_opening_line_names_candidate_and_role():
    settings = InterviewSettings(candidate_name="Ada", position="ML Engineer")
    assert opening_line(settings) == "Hello Ada, welcome to your interview for the ML Engineer position."


def test_instruction_requests_exact_opening_line():
    settings = InterviewSettings(
        candidate_name="Ada",
        position="ML Engineer",
        difficulty="Hard",
        language="fr-FR",
        opening_line="  Bonjour Ada.  ",
    )
    instruction = build_system_instruction(settings)

    assert 'Your first sentence must be exactly: "Bonjour Ada."' in instruction
    assert "Hard level interview" in instruction
    assert "French (France)" in instruction
    assert "Not provided." in instruction


def test_unknown_language_falls_back_to_english():
    assert language_name("xx-XX") == "English"
