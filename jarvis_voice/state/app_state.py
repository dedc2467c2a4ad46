"""Session-scoped state rendered by the host surfaces."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Literal

from ..services.schemas import SessionState, Speaker, TranscriptEntry


StatusTone = Literal["idle", "listening", "processing", "error"]

IDLE_TEXT = "Click to Start"
LISTENING_TEXT = "Listening..."
PROCESSING_TEXT = "Processing..."


@dataclass(frozen=True, slots=True)
class StatusView:
    """Contents of the status indicator."""

    text: str
    tone: StatusTone

    @classmethod
    def for_state(cls, state: SessionState) -> "StatusView":
        """Resting status for a non-error state."""
        if state is SessionState.LISTENING:
            return cls(LISTENING_TEXT, "listening")
        if state is SessionState.PROCESSING:
            return cls(PROCESSING_TEXT, "processing")
        return cls(IDLE_TEXT, "idle")

    @classmethod
    def error(cls, message: str) -> "StatusView":
        return cls(message, "error")


class ErrorFlash:
    """Keeps error text on the badge for a while before the idle status returns.

    Only the idle status is held back; any other status replaces the error
    immediately so the toggle control never lags behind the session.
    """

    def __init__(self) -> None:
        self.active = False
        self.pending: StatusView | None = None

    def push(self, status: StatusView) -> StatusView | None:
        """Return the status to show now, or None when it is held back."""
        if status.tone == "error":
            self.active = True
            self.pending = None
            return status
        if self.active and status.tone == "idle":
            self.pending = status
            return None
        self.active = False
        self.pending = None
        return status

    def expire(self) -> StatusView | None:
        """End the flash; return the held status, if any."""
        held, self.pending = self.pending, None
        self.active = False
        return held


EntryCallback = Callable[[TranscriptEntry], None]


class TranscriptLog:
    """Append-only record of exchanged utterances, newest first."""

    def __init__(self, assistant_name: str = "Jarvis") -> None:
        self.labels = {
            Speaker.USER: "You",
            Speaker.ASSISTANT: assistant_name,
            Speaker.SYSTEM: "System",
        }
        self._entries: list[TranscriptEntry] = []
        self._lock = threading.Lock()
        self._subscribers: list[EntryCallback] = []

    def add(self, speaker: Speaker, text: str) -> TranscriptEntry:
        """Insert a new entry at the front and notify subscribers."""
        entry = TranscriptEntry(speaker=speaker, text=text)
        with self._lock:
            self._entries.insert(0, entry)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(entry)
        return entry

    def subscribe(self, callback: EntryCallback) -> None:
        """Call ``callback`` with every entry added from now on."""
        with self._lock:
            self._subscribers.append(callback)

    def entries(self) -> list[TranscriptEntry]:
        """Snapshot of the entries, newest first."""
        with self._lock:
            return list(self._entries)

    def render(self, entry: TranscriptEntry) -> str:
        return f"{self.labels[entry.speaker]}: {entry.text}"

    def lines(self) -> list[str]:
        """Rendered entries, newest first."""
        return [self.render(entry) for entry in self.entries()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
