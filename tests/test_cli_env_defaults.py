import argparse

import pytest
from docx import Document

from live_interview.config import Settings
from live_interview.main import build_interview_settings, build_parser, load_job_description


def test_cli_env_defaults_are_used(monkeypatch):
    monkeypatch.setenv("LIVE_INTERVIEW_CANDIDATE", "Ada")
    monkeypatch.setenv("LIVE_INTERVIEW_POSITION", "Site Reliability Engineer")
    monkeypatch.setenv("LIVE_INTERVIEW_DIFFICULTY", "Hard")
    monkeypatch.setenv("LIVE_INTERVIEW_LANGUAGE", "de-DE")
    monkeypatch.setenv("LIVE_INTERVIEW_MODE", "chat")
    monkeypatch.setenv("LIVE_INTERVIEW_RECORD", "false")

    args = build_parser().parse_args([])

    assert args.candidate == "Ada"
    assert args.position == "Site Reliability Engineer"
    assert args.difficulty == "Hard"
    assert args.language == "de-DE"
    assert args.mode == "chat"
    assert args.record == "false"
    assert args.feedback == "false"


def test_model_defaults_follow_mode(monkeypatch):
    monkeypatch.delenv("LIVE_INTERVIEW_MODEL", raising=False)
    monkeypatch.delenv("LIVE_INTERVIEW_VOICE", raising=False)
    app_settings = Settings(live_model="live-model", chat_model="chat-model", voice_name="Puck")

    audio = build_interview_settings(
        build_parser().parse_args(["--position", "QA", "--mode", "audio"]), app_settings
    )
    chat = build_interview_settings(
        build_parser().parse_args(["--position", "QA", "--mode", "chat"]), app_settings
    )

    assert audio.model == "live-model"
    assert chat.model == "chat-model"
    assert audio.voice_name == "Puck"


def test_position_is_required(monkeypatch):
    monkeypatch.delenv("LIVE_INTERVIEW_POSITION", raising=False)
    args = build_parser().parse_args([])
    with pytest.raises(ValueError, match="position"):
        build_interview_settings(args, Settings())


def test_job_description_from_docx(tmp_path):
    path = tmp_path / "job.docx"
    doc = Document()
    doc.add_paragraph("Senior Python Engineer")
    doc.add_paragraph("")
    doc.add_paragraph("Owns the ingestion pipeline.")
    doc.save(str(path))

    args = argparse.Namespace(job_text=None, job_file=str(path))
    assert load_job_description(args) == "Senior Python Engineer\nOwns the ingestion pipeline."


def test_job_description_missing_file(tmp_path):
    args = argparse.Namespace(job_text=None, job_file=str(tmp_path / "missing.txt"))
    with pytest.raises(FileNotFoundError):
        load_job_description(args)


def test_settings_recording_defaults():
    settings = Settings(_env_file=None)

    assert "debug" not in Settings.model_fields
    assert settings.recorder_finalize_timeout_s == 1.0
    assert settings.video_finalize_timeout_s == 10.0
    assert settings.video_fps == 15.0
    assert settings.ffmpeg_binary == "ffmpeg"


def test_video_mode_and_camera_from_env(monkeypatch):
    monkeypatch.setenv("LIVE_INTERVIEW_MODE", "video")
    monkeypatch.setenv("LIVE_INTERVIEW_CAMERA", "2")

    args = build_parser().parse_args(["--position", "QA"])
    interview = build_interview_settings(args, Settings(live_model="live-model"))

    assert args.camera == 2
    assert interview.mode == "video"
    assert interview.model == "live-model"
    assert interview.records_media
