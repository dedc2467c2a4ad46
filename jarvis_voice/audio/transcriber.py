"""ASR utilities powered by faster-whisper."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from faster_whisper import WhisperModel


@dataclass(slots=True)
class WhisperConfig:
    """Configuration for the faster-whisper engine."""

    model: str = "base"
    language: str = "en"
    device: str = "cpu"
    compute_type: str = "int8"
    beam_size: int = 5


class WhisperTranscriber:
    """Thin wrapper around WhisperModel for single utterances."""

    def __init__(self, config: WhisperConfig) -> None:
        self.config = config
        self.model = WhisperModel(
            config.model,
            device=config.device,
            compute_type=config.compute_type,
        )

    def transcribe(self, pcm: bytes, sample_rate: int) -> str:
        """Transcribe int16 mono PCM and return the best guess."""
        if sample_rate != 16_000:
            raise ValueError("faster-whisper expects 16 kHz audio")
        audio = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
        segments, _ = self.model.transcribe(
            audio,
            language=self.config.language,
            beam_size=self.config.beam_size,
        )
        return " ".join(segment.text.strip() for segment in segments).strip()
