"""Data schemas shared by the controller, the capture layer and the endpoint client."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from ..core.errors import DecodeError


class SessionState(str, Enum):
    """Interaction state owned by the controller."""

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    ERROR = "error"


class Speaker(str, Enum):
    """Author of a transcript entry."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    """Single exchanged utterance."""

    speaker: Speaker
    text: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class CommandRequest:
    """Body sent to the command endpoint."""

    command: str

    def to_payload(self) -> dict[str, Any]:
        """Serialize the request for the API call."""
        return {"command": self.command}


@dataclass(frozen=True, slots=True)
class CommandReply:
    """Reply returned by the command endpoint."""

    response: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CommandReply":
        """Build a reply from a decoded JSON body."""
        if not isinstance(payload, dict):
            raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
        raw = payload.get("response")
        if not raw:
            return cls(response=None)
        return cls(response=raw if isinstance(raw, str) else str(raw))


# Capture notifications -------------------------------------------------------

NO_SPEECH = "no-speech"
AUDIO_CAPTURE = "audio-capture"
ENGINE_UNAVAILABLE = "engine-unavailable"
TRANSCRIPTION_FAILED = "transcription-failed"


@dataclass(frozen=True, slots=True)
class CaptureStarted:
    """The capture session opened the microphone."""


@dataclass(frozen=True, slots=True)
class CaptureTranscript:
    """Best-guess lowercase text of one completed utterance."""

    text: str


@dataclass(frozen=True, slots=True)
class CaptureEnded:
    """The capture session concluded (result, silence, error or stop)."""


@dataclass(frozen=True, slots=True)
class CaptureFailed:
    """Capture fault reported by the platform layer."""

    code: str


CaptureEvent = Union[CaptureStarted, CaptureTranscript, CaptureEnded, CaptureFailed]
