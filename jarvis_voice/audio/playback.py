"""Audio output queue for synthesized speech."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass

import sounddevice as sd

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PlaybackConfig:
    """Playback configuration."""

    sample_rate: int = 22_050
    channels: int = 1
    device_name: str | None = None


class SpeechPlayback:
    """Buffered int16 output stream; utterances queue up and play in order."""

    def __init__(self, config: PlaybackConfig | None = None) -> None:
        self.config = config or PlaybackConfig()
        self._buffer = deque[bytes]()
        self._lock = threading.RLock()
        self._stream: sd.RawOutputStream | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def play(self, pcm_data: bytes, sample_rate: int | None = None, channels: int | None = None) -> None:
        """Queue a PCM buffer for playback."""
        if not pcm_data:
            return
        with self._lock:
            rate = sample_rate or self.config.sample_rate
            count = channels or self.config.channels
            if rate != self.config.sample_rate or count != self.config.channels:
                self._drain_locked()
                self.config.sample_rate = rate
                self.config.channels = count
            self._ensure_stream()
            self._buffer.append(pcm_data)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the buffer is empty; return False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                if not self._buffer:
                    return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.05)

    def stop(self) -> None:
        """Stop playback and clear the buffer."""
        with self._lock:
            self._buffer.clear()
            self._close_stream()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _drain_locked(self) -> None:
        # The stream format is changing: let queued audio finish first.
        while self._buffer and self._stream is not None and self._stream.active:
            self._lock.release()
            try:
                time.sleep(0.02)
            finally:
                self._lock.acquire()
        self._close_stream()

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def _ensure_stream(self) -> None:
        if self._stream is not None:
            if not self._stream.active:
                self._stream.start()
            return
        self._stream = sd.RawOutputStream(
            samplerate=self.config.sample_rate,
            channels=self.config.channels,
            dtype="int16",
            callback=self._on_write,
            device=self.config.device_name,
        )
        self._stream.start()

    def _on_write(self, outdata: bytearray, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Playback status: %s", status)
        with self._lock:
            if not self._buffer:
                outdata[:] = b"\x00" * len(outdata)
                return
            chunk = self._buffer.popleft()
            if len(chunk) >= len(outdata):
                outdata[:] = chunk[: len(outdata)]
                remainder = chunk[len(outdata) :]
                if remainder:
                    self._buffer.appendleft(remainder)
            else:
                outdata[: len(chunk)] = chunk
                outdata[len(chunk) :] = b"\x00" * (len(outdata) - len(chunk))
