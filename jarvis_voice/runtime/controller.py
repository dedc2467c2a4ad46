"""Interaction state machine coordinating capture, dispatch and speech output."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from typing import Callable, Optional, Protocol

from ..config.settings import Settings
from ..core.errors import CaptureError, DispatchError, SpeechOutputError
from ..core.trace import new_trace_id
from ..services.schemas import (
    CaptureEnded,
    CaptureEvent,
    CaptureFailed,
    CaptureStarted,
    CaptureTranscript,
    CommandReply,
    SessionState,
    Speaker,
)
from ..state.app_state import StatusView, TranscriptLog

LOGGER = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Speech recognition is not supported on this system."
START_FAILED_MESSAGE = "Failed to start listening"
DISPATCH_FAILED_MESSAGE = "Failed to process command"
SPEECH_FAILED_MESSAGE = "Speech output failed"
UNEXPECTED_MESSAGE = "Unexpected error"


class Capture(Protocol):
    @property
    def available(self) -> bool: ...

    def bind(self, consumer: Callable[[CaptureEvent], None]) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class Dispatcher(Protocol):
    async def send(self, command: str) -> CommandReply: ...


class Speech(Protocol):
    def speak(self, text: str) -> None: ...

    def bind_errors(self, callback: Optional[Callable[[SpeechOutputError], None]]) -> None: ...


StatusCallback = Callable[[StatusView], None]


class InteractionController:
    """Sole owner of the session state and of the user-visible status.

    Capture notifications are queued and handled one at a time on the
    controller loop; the remote exchange runs as a task on the same loop. Only
    one exchange can be in flight because a transcript is accepted in the
    Listening state only, and Listening is not re-entered before the exchange
    settles.
    """

    def __init__(
        self,
        capture: Capture,
        dispatcher: Dispatcher,
        speech: Speech,
        *,
        settings: Settings,
        log: TranscriptLog | None = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.settings = settings
        self.capture = capture
        self.dispatcher = dispatcher
        self.speech = speech
        self.log = log or TranscriptLog(settings.assistant_name)
        if loop is not None:
            self.loop = loop
            self._owns_loop = False
            self._loop_thread: Optional[threading.Thread] = None
        else:
            self.loop = asyncio.new_event_loop()
            self._owns_loop = True
            self._loop_thread = threading.Thread(target=self._run_loop, name="controller-loop", daemon=True)
            self._loop_thread.start()

        self.state = SessionState.IDLE
        self.status = StatusView.for_state(SessionState.IDLE)
        self.restarts = 0
        self._intended_listening = False
        self._open_sessions = 0
        self._unsupported_reported = False
        self._events: asyncio.Queue[Optional[CaptureEvent]] = asyncio.Queue()
        self._dispatch_task: Optional[asyncio.Task[None]] = None
        self._runner: Optional[asyncio.Future[None]] = None
        self._status_callback: Optional[StatusCallback] = None

        capture.bind(self.post_event)
        speech.bind_errors(self.post_speech_error)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def listening(self) -> bool:
        """True while the session is in the Listening state."""
        return self.state is SessionState.LISTENING

    def set_status_callback(self, callback: Optional[StatusCallback]) -> None:
        """Register a callback receiving every status change."""
        self._status_callback = callback

    def start(self) -> None:
        """Begin consuming capture events."""
        if self._runner is not None:
            return
        if self._owns_loop:
            asyncio.run_coroutine_threadsafe(self._spawn_runner(), self.loop).result()
        else:
            self._runner = self.loop.create_task(self.run())

    def request_toggle(self) -> None:
        """Thread-safe variant of ``toggle``."""
        self.loop.call_soon_threadsafe(self.toggle)

    def toggle(self) -> None:
        """Handle the user's toggle request. Must run on the controller loop."""
        try:
            if self.state is SessionState.IDLE:
                self._start_listening()
            elif self.state is SessionState.LISTENING:
                LOGGER.info("Listening stopped by user.")
                self._stop_capture()
                self._set_state(SessionState.IDLE)
            else:
                LOGGER.debug("Toggle ignored while %s.", self.state.value)
        except Exception:
            LOGGER.exception("Unhandled error while toggling")
            self._recover(UNEXPECTED_MESSAGE)

    def post_event(self, event: Optional[CaptureEvent]) -> None:
        """Queue a capture notification; callable from any thread."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self._events.put_nowait(event)
            return
        try:
            self.loop.call_soon_threadsafe(self._events.put_nowait, event)
        except RuntimeError:  # pragma: no cover - loop already closed
            LOGGER.debug("Dropping capture event after shutdown: %r", event)

    def post_speech_error(self, error: SpeechOutputError) -> None:
        """Report a speech output failure; callable from any thread."""
        try:
            self.loop.call_soon_threadsafe(self._on_speech_failed, error)
        except RuntimeError:  # pragma: no cover - loop already closed
            LOGGER.debug("Dropping speech error after shutdown: %s", error)

    async def run(self) -> None:
        """Handle queued capture events in delivery order until closed."""
        while True:
            event = await self._events.get()
            try:
                if event is None:
                    return
                self._handle_event(event)
            except Exception:
                LOGGER.exception("Unhandled error while handling %r", event)
                self._recover(UNEXPECTED_MESSAGE)
            finally:
                self._events.task_done()

    async def drain(self) -> None:
        """Wait until every queued capture event has been handled."""
        await self._events.join()

    async def settle(self) -> None:
        """Wait until queued events and the in-flight exchange are handled."""
        while True:
            await self.drain()
            task = self._dispatch_task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            if self._events.empty():
                return

    async def aclose(self) -> None:
        """Stop capture, drop the pending exchange and stop the event consumer."""
        self._stop_capture()
        task = self._dispatch_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._events.put_nowait(None)
        if self._runner is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._runner
            self._runner = None
        close = getattr(self.dispatcher, "close", None)
        if close is not None:
            await close()

    def shutdown(self) -> None:
        """Release everything owned by the controller."""
        if not self._owns_loop:
            raise RuntimeError("shutdown() is for controllers owning their loop; await aclose() instead.")
        future = asyncio.run_coroutine_threadsafe(self.aclose(), self.loop)
        try:
            future.result(timeout=2)
        except Exception as exc:  # pragma: no cover - best effort on exit
            LOGGER.warning("Controller shutdown incomplete: %r", exc)
        self.loop.call_soon_threadsafe(self.loop.stop)
        if self._loop_thread is not None:
            self._loop_thread.join(timeout=1)
            self._loop_thread = None

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def _start_listening(self) -> None:
        if not self.capture.available:
            LOGGER.warning("Speech capture unavailable.")
            self._show_error(UNSUPPORTED_MESSAGE, log_entry=not self._unsupported_reported)
            self._unsupported_reported = True
            self._set_state(SessionState.IDLE)
            return
        try:
            self.capture.start()
        except CaptureError as exc:
            LOGGER.warning("Error starting capture: %s", exc)
            self._show_error(START_FAILED_MESSAGE)
            self._set_state(SessionState.IDLE)
            return
        self._open_sessions += 1
        self._intended_listening = True
        self._set_state(SessionState.LISTENING)

    def _handle_event(self, event: CaptureEvent) -> None:
        if isinstance(event, CaptureStarted):
            LOGGER.debug("Capture session running.")
        elif isinstance(event, CaptureTranscript):
            self._on_transcript(event.text)
        elif isinstance(event, CaptureFailed):
            self._on_capture_failed(event.code)
        elif isinstance(event, CaptureEnded):
            self._on_capture_ended()
        else:
            LOGGER.warning("Unknown capture event: %r", event)

    def _on_transcript(self, text: str) -> None:
        text = text.strip()
        if self.state is not SessionState.LISTENING or not text:
            LOGGER.info("Dropping transcript received while %s.", self.state.value)
            return
        if self._dispatch_task is not None and not self._dispatch_task.done():
            LOGGER.error("Dropping transcript: an exchange is still in flight.")
            return
        LOGGER.info("Command recognized: %s", text)
        self.log.add(Speaker.USER, text)
        self._stop_capture()
        self._set_state(SessionState.PROCESSING)
        self._dispatch_task = self.loop.create_task(self._dispatch(text))

    def _on_capture_failed(self, code: str) -> None:
        if self.state is not SessionState.LISTENING:
            LOGGER.info("Ignoring capture error %s while %s.", code, self.state.value)
            return
        LOGGER.warning("Recognition error: %s", code)
        self._stop_capture()
        self._show_error(f"Recognition error: {code}")
        self._set_state(SessionState.IDLE)

    def _on_capture_ended(self) -> None:
        self._open_sessions = max(0, self._open_sessions - 1)
        if not self._intended_listening or self.state is not SessionState.LISTENING:
            LOGGER.debug("Capture session ended.")
            return
        if self._open_sessions:
            # A newer session is already running; this notification is stale.
            return
        try:
            self.capture.start()
        except CaptureError as exc:
            LOGGER.warning("Capture restart failed: %s", exc)
            self._stop_capture()
            self._show_error(START_FAILED_MESSAGE)
            self._set_state(SessionState.IDLE)
            return
        self._open_sessions += 1
        self.restarts += 1
        LOGGER.debug("Capture restarted (%d).", self.restarts)

    async def _dispatch(self, command: str) -> None:
        exchange = new_trace_id()
        started = time.perf_counter()
        LOGGER.info("Dispatching command, exchange %s.", exchange)
        try:
            reply = await self.dispatcher.send(command)
        except DispatchError as exc:
            LOGGER.warning("Command dispatch failed: %s", exc)
            self._show_error(DISPATCH_FAILED_MESSAGE)
        except Exception:
            LOGGER.exception("Unexpected failure during command dispatch")
            self._show_error(DISPATCH_FAILED_MESSAGE)
        else:
            LOGGER.info("Exchange %s settled in %.2fs.", exchange, time.perf_counter() - started)
            if reply.response:
                self.log.add(Speaker.ASSISTANT, reply.response)
                self._speak(reply.response)
            else:
                LOGGER.info("Command endpoint returned no response text.")
        finally:
            self._stop_capture()
            self._set_state(SessionState.IDLE)

    def _speak(self, text: str) -> None:
        try:
            self.speech.speak(text)
        except Exception as exc:
            self._on_speech_failed(SpeechOutputError(str(exc) or type(exc).__name__))

    def _on_speech_failed(self, error: SpeechOutputError) -> None:
        LOGGER.warning("Speech output failed: %s", error)
        self.log.add(Speaker.SYSTEM, f"Error: {SPEECH_FAILED_MESSAGE}")

    def _recover(self, message: str) -> None:
        self._stop_capture()
        self._show_error(message)
        if self._dispatch_task is not None and not self._dispatch_task.done():
            self._set_state(SessionState.PROCESSING)
        else:
            self._set_state(SessionState.IDLE)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _stop_capture(self) -> None:
        self._intended_listening = False
        self.capture.stop()

    def _show_error(self, message: str, *, log_entry: bool = True) -> None:
        """Error overlay: callers move to a resting state right after."""
        self.state = SessionState.ERROR
        self._publish(StatusView.error(message))
        if log_entry:
            self.log.add(Speaker.SYSTEM, f"Error: {message}")

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            LOGGER.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state
        self._publish(StatusView.for_state(state))

    def _publish(self, status: StatusView) -> None:
        if status == self.status:
            return
        self.status = status
        if self._status_callback is not None:
            self._status_callback(status)

    async def _spawn_runner(self) -> None:
        self._runner = self.loop.create_task(self.run())

    def _run_loop(self) -> None:
        """Run the owned asyncio loop in a dedicated thread."""
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()
