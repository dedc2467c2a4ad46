"""Unified configuration for the voice console."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global settings for the voice console."""

    model_config = SettingsConfigDict(
        env_prefix="JARVIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote command endpoint
    command_url: str = "http://127.0.0.1:5000/process_command"
    verify_ssl: bool = True
    dispatch_timeout: float | None = None

    # Session
    assistant_name: str = "Jarvis"
    locale: str = "en-US"
    error_flash_ms: int = 1500

    # Capture / ASR
    input_device: str | None = None
    sample_rate: int = 16_000
    frame_duration_ms: int = 30
    vad_aggressiveness: int = 2
    no_speech_timeout: float = 8.0
    end_of_speech_silence: float = 0.8
    max_utterance_seconds: float = 15.0
    asr_model: str = "base"
    asr_device: str = "cpu"
    asr_compute_type: str = "int8"

    # Speech output
    output_device: str | None = None
    tts_model_path: str | None = None
    tts_length_scale: float = 1.0

    # Visual indicator
    indicator_interval_ms: int = 16
    indicator_amplitude: float = 20.0

    # Logs
    log_dir: str = "logs"
    log_level: str = "INFO"
    log_rotate_mb: int = 5
    log_retention_days: int = 7

    @property
    def language(self) -> str:
        """Language code understood by the transcriber ("en-US" -> "en")."""
        return self.locale.split("-", 1)[0].lower()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls.json_config_settings_source,
            file_secret_settings,
        )

    @staticmethod
    def json_config_settings_source() -> dict[str, object]:
        """Load config.json from the working directory when present."""
        config_path = Path.cwd() / "config.json"
        if config_path.is_file():
            try:
                return json.loads(config_path.read_text(encoding="utf-8"))
            except ValueError:
                return {}
        return {}


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
