"""Voice activity detection and single-utterance segmentation."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import webrtcvad


_VALID_SAMPLE_RATES = (8000, 16_000, 32_000, 48_000)
_VALID_FRAME_DURATIONS_MS = (10, 20, 30)


class SpeechDetector(Protocol):
    """Anything able to classify one PCM frame as speech or not."""

    def is_speech(self, frame: bytes, sample_rate: int) -> bool: ...


@dataclass(slots=True)
class VADConfig:
    """WebRTC VAD configuration."""

    aggressiveness: int = 2  # 0 (sensitive) to 3 (strict)


class VoiceActivityDetector:
    """Wrapper around the WebRTC VAD implementation."""

    def __init__(self, config: VADConfig | None = None) -> None:
        self.config = config or VADConfig()
        self.config.aggressiveness = max(0, min(3, self.config.aggressiveness))
        self._vad = webrtcvad.Vad(self.config.aggressiveness)

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        """Return True when the frame contains speech."""
        if sample_rate not in _VALID_SAMPLE_RATES:
            raise ValueError(f"Unsupported sample rate for VAD: {sample_rate}")
        return self._vad.is_speech(self._normalize_frame(frame, sample_rate), sample_rate)

    @staticmethod
    def _normalize_frame(frame: bytes, sample_rate: int) -> bytes:
        """Pad or trim to the closest frame length WebRTC VAD accepts."""
        frame_samples = len(frame) // 2
        expected = [sample_rate * duration // 1000 for duration in _VALID_FRAME_DURATIONS_MS]
        target_bytes = min(expected, key=lambda samples: abs(samples - frame_samples)) * 2
        if len(frame) >= target_bytes:
            return frame[:target_bytes]
        return frame + bytes(target_bytes - len(frame))


class SegmentStatus(str, Enum):
    """Outcome of feeding one frame to the segmenter."""

    WAITING = "waiting"
    SPEECH = "speech"
    COMPLETE = "complete"
    NO_SPEECH = "no-speech"


class UtteranceSegmenter:
    """Collect exactly one utterance out of a frame stream.

    Frames are buffered in a short pre-roll until speech is detected. The
    utterance completes after ``end_silence_ms`` of trailing silence or once
    ``max_utterance_ms`` of audio was collected. If no speech shows up within
    ``no_speech_timeout_ms`` the segment is abandoned.
    """

    def __init__(
        self,
        detector: SpeechDetector,
        *,
        sample_rate: int = 16_000,
        frame_duration_ms: int = 30,
        end_silence_ms: int = 800,
        no_speech_timeout_ms: int = 8000,
        max_utterance_ms: int = 15_000,
        pre_roll_ms: int = 300,
    ) -> None:
        self.detector = detector
        self.sample_rate = sample_rate
        self.frame_duration_ms = frame_duration_ms
        self.end_silence_ms = end_silence_ms
        self.no_speech_timeout_ms = no_speech_timeout_ms
        self.max_utterance_ms = max_utterance_ms
        self._pre_roll: deque[bytes] = deque(maxlen=max(1, pre_roll_ms // frame_duration_ms))
        self._frames: list[bytes] = []
        self._triggered = False
        self._waited_ms = 0
        self._voiced_ms = 0
        self._silence_ms = 0

    @property
    def triggered(self) -> bool:
        """True once speech has been detected."""
        return self._triggered

    @property
    def audio(self) -> bytes:
        """PCM of the collected utterance (pre-roll included)."""
        return b"".join(self._frames)

    def feed(self, frame: bytes) -> SegmentStatus:
        """Classify ``frame`` and advance the segmentation."""
        speech = self.detector.is_speech(frame, self.sample_rate)
        if not self._triggered:
            self._pre_roll.append(frame)
            self._waited_ms += self.frame_duration_ms
            if speech:
                self._triggered = True
                self._frames.extend(self._pre_roll)
                self._pre_roll.clear()
                self._voiced_ms = self.frame_duration_ms
                return SegmentStatus.SPEECH
            if self._waited_ms >= self.no_speech_timeout_ms:
                return SegmentStatus.NO_SPEECH
            return SegmentStatus.WAITING

        self._frames.append(frame)
        self._voiced_ms += self.frame_duration_ms
        self._silence_ms = 0 if speech else self._silence_ms + self.frame_duration_ms
        if self._silence_ms >= self.end_silence_ms or self._voiced_ms >= self.max_utterance_ms:
            return SegmentStatus.COMPLETE
        return SegmentStatus.SPEECH
