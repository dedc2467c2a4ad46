from __future__ import annotations

import json

from jarvis_voice.config import settings as settings_module
from jarvis_voice.config.paths import find_model, log_dir
from jarvis_voice.config.settings import Settings, get_settings

import pytest


def test_defaults():
    settings = Settings()
    assert settings.command_url == "http://127.0.0.1:5000/process_command"
    assert settings.assistant_name == "Jarvis"
    assert settings.dispatch_timeout is None
    assert settings.language == "en"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("JARVIS_COMMAND_URL", "https://assistant.local/process_command")
    monkeypatch.setenv("JARVIS_ASSISTANT_NAME", "Friday")
    monkeypatch.setenv("JARVIS_LOCALE", "fr-FR")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    settings = get_settings()

    assert settings.command_url == "https://assistant.local/process_command"
    assert settings.assistant_name == "Friday"
    assert settings.language == "fr"


def test_config_json_is_read_from_working_directory(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"assistant_name": "Edith", "vad_aggressiveness": 3}), encoding="utf-8")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    settings = get_settings()

    assert settings.assistant_name == "Edith"
    assert settings.vad_aggressiveness == 3


def test_environment_beats_config_json(tmp_path, monkeypatch):
    (tmp_path / "config.json").write_text(json.dumps({"assistant_name": "Edith"}), encoding="utf-8")
    monkeypatch.setenv("JARVIS_ASSISTANT_NAME", "Friday")

    assert Settings().assistant_name == "Friday"


def test_invalid_config_json_is_ignored(tmp_path):
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")
    assert Settings().assistant_name == "Jarvis"


def test_config_source_can_be_replaced(monkeypatch):
    monkeypatch.setattr(
        settings_module.Settings,
        "json_config_settings_source",
        staticmethod(lambda: {"error_flash_ms": 250}),
    )
    get_settings.cache_clear()  # type: ignore[attr-defined]
    assert get_settings().error_flash_ms == 250


def test_relative_log_dir_resolves_against_working_directory(tmp_path):
    path = log_dir(Settings(log_dir="var/logs"))
    assert path == tmp_path / "var" / "logs"
    assert path.is_dir()


def test_find_model(tmp_path):
    voices = tmp_path / "tts"
    (voices / "en").mkdir(parents=True)
    (voices / "en" / "amy.onnx").write_bytes(b"")
    (voices / "en" / "amy.onnx.json").write_text("{}", encoding="utf-8")

    assert find_model(voices, ".onnx") == voices / "en" / "amy.onnx"
    with pytest.raises(FileNotFoundError):
        find_model(voices, ".bin")
