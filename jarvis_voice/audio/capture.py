"""Speech capture: one utterance per session, reported as capture events."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from ..config.settings import Settings
from ..core.errors import CapabilityUnavailable, CaptureError
from ..services.schemas import (
    AUDIO_CAPTURE,
    ENGINE_UNAVAILABLE,
    NO_SPEECH,
    TRANSCRIPTION_FAILED,
    CaptureEnded,
    CaptureEvent,
    CaptureFailed,
    CaptureStarted,
    CaptureTranscript,
)
from .vad import SegmentStatus, SpeechDetector, UtteranceSegmenter, VADConfig, VoiceActivityDetector

LOGGER = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Open audio input yielding PCM frames."""

    def __enter__(self) -> "FrameSource": ...

    def __exit__(self, *exc_info: object) -> None: ...

    def read(self, timeout: float = 0.1) -> Optional[bytes]: ...


class Transcriber(Protocol):
    """Speech-to-text engine for one utterance."""

    def transcribe(self, pcm: bytes, sample_rate: int) -> str: ...


EventConsumer = Callable[[CaptureEvent], None]


class SpeechCapture:
    """Single-shot speech capture sessions over a microphone.

    ``start`` spawns a worker thread that emits ``CaptureStarted``, at most one
    ``CaptureTranscript`` or ``CaptureFailed``, and always a final
    ``CaptureEnded``. Continuous listening is the caller's business.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        source_factory: Callable[[], FrameSource] | None = None,
        transcriber_factory: Callable[[], Transcriber] | None = None,
        detector_factory: Callable[[], SpeechDetector] | None = None,
        available: bool | None = None,
    ) -> None:
        self.settings = settings
        self._source_factory = source_factory or self._default_source
        self._transcriber_factory = transcriber_factory or self._default_transcriber
        self._detector_factory = detector_factory or self._default_detector
        if available is None:
            from .microphone import has_input_device

            available = has_input_device(settings.input_device)
        self._available = available
        self._consumer: EventConsumer | None = None
        self._transcriber: Transcriber | None = None
        self._transcriber_lock = threading.Lock()
        self._lock = threading.Lock()
        self._active = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def available(self) -> bool:
        """True when the platform offers speech capture."""
        return self._available

    @property
    def active(self) -> bool:
        """True while a capture session is running."""
        return self._active

    def bind(self, consumer: EventConsumer) -> None:
        """Register the capture event consumer."""
        self._consumer = consumer

    def start(self) -> None:
        """Begin a capture session."""
        if not self._available:
            raise CapabilityUnavailable("Speech recognition is not supported on this system.")
        if self._consumer is None:
            raise RuntimeError("No capture event consumer registered.")
        with self._lock:
            if self._active:
                raise CaptureError("A capture session is already running.", code="already-started")
            self._active = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_session,
                args=(self._stop_event,),
                name="speech-capture",
                daemon=True,
            )
            try:
                self._thread.start()
            except RuntimeError as exc:
                self._active = False
                self._thread = None
                raise CaptureError(f"Unable to start capture session: {exc}") from exc
        LOGGER.debug("Capture session started.")

    def stop(self) -> None:
        """Request termination of the running session, if any."""
        with self._lock:
            if not self._active:
                return
            self._stop_event.set()
        LOGGER.debug("Capture stop requested.")

    def wait(self, timeout: float | None = None) -> bool:
        """Join the worker thread; return True when no session is running."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self._active

    # ------------------------------------------------------------------ #
    # Session worker
    # ------------------------------------------------------------------ #
    def _run_session(self, stop: threading.Event) -> None:
        self._emit(CaptureStarted())
        try:
            self._capture_utterance(stop)
        finally:
            with self._lock:
                self._active = False
            self._emit(CaptureEnded())

    def _capture_utterance(self, stop: threading.Event) -> None:
        try:
            transcriber = self._ensure_transcriber()
        except Exception as exc:
            LOGGER.error("Speech engine unavailable: %s", exc)
            self._emit(CaptureFailed(ENGINE_UNAVAILABLE))
            return

        settings = self.settings
        segmenter = UtteranceSegmenter(
            self._detector_factory(),
            sample_rate=settings.sample_rate,
            frame_duration_ms=settings.frame_duration_ms,
            end_silence_ms=int(settings.end_of_speech_silence * 1000),
            no_speech_timeout_ms=int(settings.no_speech_timeout * 1000),
            max_utterance_ms=int(settings.max_utterance_seconds * 1000),
        )
        status = SegmentStatus.WAITING
        try:
            with self._source_factory() as source:
                while not stop.is_set():
                    frame = source.read(timeout=0.1)
                    if frame is None:
                        continue
                    status = segmenter.feed(frame)
                    if status in (SegmentStatus.COMPLETE, SegmentStatus.NO_SPEECH):
                        break
        except Exception as exc:
            LOGGER.error("Microphone failure: %s", exc)
            self._emit(CaptureFailed(AUDIO_CAPTURE))
            return

        if stop.is_set():
            LOGGER.debug("Capture session stopped before completion.")
            return
        if status is SegmentStatus.NO_SPEECH:
            self._emit(CaptureFailed(NO_SPEECH))
            return

        try:
            text = transcriber.transcribe(segmenter.audio, settings.sample_rate)
        except Exception as exc:
            LOGGER.error("Transcription failed: %s", exc)
            self._emit(CaptureFailed(TRANSCRIPTION_FAILED))
            return
        text = text.strip().lower()
        if not text:
            LOGGER.debug("Utterance produced no text.")
            return
        if stop.is_set():
            return
        LOGGER.info("Utterance recognized (%d chars).", len(text))
        self._emit(CaptureTranscript(text))

    def _emit(self, event: CaptureEvent) -> None:
        consumer = self._consumer
        if consumer is not None:
            consumer(event)

    def _ensure_transcriber(self) -> Transcriber:
        """Load the speech engine on first use."""
        with self._transcriber_lock:
            if self._transcriber is None:
                self._transcriber = self._transcriber_factory()
            return self._transcriber

    # ------------------------------------------------------------------ #
    # Default platform bindings
    # ------------------------------------------------------------------ #
    def _default_source(self) -> FrameSource:
        from .microphone import MicrophoneConfig, MicrophoneStream

        return MicrophoneStream(
            MicrophoneConfig(
                sample_rate=self.settings.sample_rate,
                frame_duration_ms=self.settings.frame_duration_ms,
                device_name=self.settings.input_device,
            )
        )

    def _default_transcriber(self) -> Transcriber:
        from .transcriber import WhisperConfig, WhisperTranscriber

        return WhisperTranscriber(
            WhisperConfig(
                model=self.settings.asr_model,
                language=self.settings.language,
                device=self.settings.asr_device,
                compute_type=self.settings.asr_compute_type,
            )
        )

    def _default_detector(self) -> SpeechDetector:
        return VoiceActivityDetector(VADConfig(aggressiveness=self.settings.vad_aggressiveness))
