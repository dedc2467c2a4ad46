"""Microphone frame source backed by sounddevice."""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from typing import Optional

import sounddevice as sd

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MicrophoneConfig:
    """Microphone capture configuration."""

    sample_rate: int = 16_000
    channels: int = 1
    frame_duration_ms: int = 30
    device_name: str | None = None


def input_devices() -> list[str]:
    """List available input devices."""
    return [
        device["name"]
        for device in sd.query_devices()
        if int(device.get("max_input_channels", 0)) > 0
    ]


def output_devices() -> list[str]:
    """List available output devices."""
    return [
        device["name"]
        for device in sd.query_devices()
        if int(device.get("max_output_channels", 0)) > 0
    ]


def has_input_device(device_name: str | None = None) -> bool:
    """Return True when a usable input device exists."""
    try:
        names = input_devices()
    except sd.PortAudioError as exc:
        LOGGER.warning("Unable to query audio devices: %s", exc)
        return False
    if device_name is None:
        return bool(names)
    return device_name in names


class MicrophoneStream:
    """Open microphone delivering fixed-size int16 frames.

    Frames are produced on the PortAudio thread and buffered until ``read``
    picks them up.
    """

    def __init__(self, config: MicrophoneConfig | None = None) -> None:
        self.config = config or MicrophoneConfig()
        self._frames: queue.Queue[bytes] = queue.Queue(maxsize=512)
        self._stream: sd.RawInputStream | None = None

    def __enter__(self) -> "MicrophoneStream":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        """Start the input stream."""
        if self._stream is not None:
            return
        frame_size = int(self.config.sample_rate * self.config.frame_duration_ms / 1000)
        self._stream = sd.RawInputStream(
            samplerate=self.config.sample_rate,
            channels=self.config.channels,
            dtype="int16",
            blocksize=frame_size,
            callback=self._on_frame,
            device=self.config.device_name,
        )
        self._stream.start()
        LOGGER.debug("Microphone opened.")

    def close(self) -> None:
        """Stop and release the input stream."""
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        LOGGER.debug("Microphone closed.")

    def read(self, timeout: float = 0.1) -> Optional[bytes]:
        """Return the next frame, or None when none arrived within ``timeout``."""
        try:
            return self._frames.get(timeout=timeout)
        except queue.Empty:
            return None

    def _on_frame(self, indata: bytes, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Microphone status: %s", status)
        try:
            self._frames.put_nowait(bytes(indata))
        except queue.Full:  # pragma: no cover - consumer stalled
            LOGGER.debug("Dropping microphone frame, buffer full.")
