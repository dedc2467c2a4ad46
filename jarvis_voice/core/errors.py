"""Error taxonomy shared by the capture, dispatch and speech layers."""

from __future__ import annotations


class VoiceError(Exception):
    """Base class for failures raised at a component boundary."""


class CaptureError(VoiceError):
    """A capture session could not be started or failed while running."""

    def __init__(self, message: str, *, code: str = "audio-capture") -> None:
        super().__init__(message)
        self.code = code


class CapabilityUnavailable(CaptureError):
    """Speech-to-text is not supported on this system."""

    def __init__(self, message: str, *, code: str = "not-supported") -> None:
        super().__init__(message, code=code)


class DispatchError(VoiceError):
    """The exchange with the remote command endpoint failed."""


class TransportError(DispatchError):
    """Non-success HTTP status or transport fault."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(DispatchError):
    """The reply body could not be parsed."""


class SpeechOutputError(VoiceError):
    """Synthesis or playback of an utterance failed."""
