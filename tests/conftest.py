from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import pytest

from jarvis_voice.config.settings import Settings, get_settings
from jarvis_voice.core.errors import CapabilityUnavailable, CaptureError
from jarvis_voice.services.schemas import (
    CaptureEnded,
    CaptureFailed,
    CaptureStarted,
    CaptureTranscript,
    CommandReply,
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("JARVIS_LOG_DIR", str(tmp_path / "logs"))
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    logger = logging.getLogger("jarvis_voice")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(command_url="http://jarvis.test/process_command")


class FakeCapture:
    """Capture double driven by the test; events go straight to the consumer."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.active = False
        self.starts = 0
        self.stops = 0
        self.start_error: Exception | None = None
        self._consumer: Callable[[Any], None] | None = None

    def bind(self, consumer: Callable[[Any], None]) -> None:
        self._consumer = consumer

    def start(self) -> None:
        if not self.available:
            raise CapabilityUnavailable("no microphone")
        if self.start_error is not None:
            raise self.start_error
        if self.active:
            raise CaptureError("already running", code="already-started")
        self.starts += 1
        self.active = True
        self._emit(CaptureStarted())

    def stop(self) -> None:
        self.stops += 1
        if self.active:
            self.active = False
            self._emit(CaptureEnded())

    def say(self, text: str) -> None:
        self._emit(CaptureTranscript(text))
        self.end()

    def fail(self, code: str) -> None:
        self._emit(CaptureFailed(code))
        self.end()

    def end(self) -> None:
        self.active = False
        self._emit(CaptureEnded())

    def _emit(self, event: Any) -> None:
        assert self._consumer is not None
        self._consumer(event)


class FakeDispatcher:
    def __init__(self, reply: CommandReply | None = None, error: Exception | None = None) -> None:
        self.reply = reply or CommandReply(response=None)
        self.error = error
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.log_at_send: list[list[str]] = []
        self.log = None

    async def send(self, command: str) -> CommandReply:
        self.calls.append(command)
        if self.log is not None:
            self.log_at_send.append(self.log.lines())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            return self.reply
        finally:
            self.in_flight -= 1


class FakeSpeech:
    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.error_callback = None
        self.fail_with: Exception | None = None

    def bind_errors(self, callback) -> None:
        self.error_callback = callback

    def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail_with is not None and self.error_callback is not None:
            self.error_callback(self.fail_with)


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def fake_speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def make_dispatcher() -> Callable[..., FakeDispatcher]:
    return FakeDispatcher


@pytest.fixture
def make_capture() -> Callable[..., FakeCapture]:
    return FakeCapture
