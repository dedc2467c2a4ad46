"""Text-to-speech helpers using Piper."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from piper import PiperVoice, SynthesisConfig


@dataclass(slots=True)
class PiperConfig:
    """Piper model configuration."""

    model_path: Path
    config_path: Path | None = None
    speaker_id: int | None = None
    length_scale: float = 1.0


class PiperTTS:
    """Thin wrapper around PiperVoice."""

    def __init__(self, config: PiperConfig) -> None:
        self.config = config
        self._voice = self._load_voice(config)

    def synthesize_stream(self, text: str) -> Iterator[tuple[bytes, int, int]]:
        """Yield audio chunks (bytes, sample_rate, channels)."""
        text = self.sanitize_text(text)
        if not text:
            return
        kwargs = {}
        if self.config.speaker_id is not None:
            kwargs["speaker_id"] = self.config.speaker_id
        if self.config.length_scale != 1.0:
            kwargs["length_scale"] = self.config.length_scale
        syn_config = SynthesisConfig(**kwargs) if kwargs else None
        for chunk in self._voice.synthesize(text, syn_config=syn_config):
            yield chunk.audio_int16_bytes, chunk.sample_rate, chunk.sample_channels or 1

    @staticmethod
    def sanitize_text(text: str) -> str:
        """Drop markup characters the voice would read out loud."""
        cleaned = re.sub(r"[*_`#<>]", " ", text)
        cleaned = re.sub(r"\s+", " ", cleaned)
        return cleaned.strip()

    @staticmethod
    def _load_voice(config: PiperConfig) -> PiperVoice:
        if not config.model_path.exists():
            raise FileNotFoundError(f"Piper model not found: {config.model_path}")
        config_path = config.config_path or Path(f"{config.model_path}.json")
        if not config_path.exists():
            raise FileNotFoundError(f"Piper config not found: {config_path}")
        return PiperVoice.load(str(config.model_path), str(config_path))
