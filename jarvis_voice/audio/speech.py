"""Fire-and-forget speech output."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, Protocol

from ..config.paths import find_model, models_dir
from ..config.settings import Settings
from ..core.errors import SpeechOutputError

LOGGER = logging.getLogger(__name__)


class Synthesizer(Protocol):
    def synthesize_stream(self, text: str) -> Iterable[tuple[bytes, int, int]]: ...


class Player(Protocol):
    def play(self, pcm_data: bytes, sample_rate: int | None = None, channels: int | None = None) -> None: ...

    def stop(self) -> None: ...


ErrorCallback = Callable[[SpeechOutputError], None]


class SpeechOutput:
    """Submit utterances to the voice synthesizer without waiting for them.

    Synthesis runs on a single worker thread and the PCM lands in the player's
    buffer, so consecutive utterances play in submission order. Failures never
    reach the caller of ``speak``; they are logged and handed to the error
    callback when one is bound.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        synthesizer_factory: Callable[[], Synthesizer] | None = None,
        player: Player | None = None,
    ) -> None:
        self.settings = settings
        self._synthesizer_factory = synthesizer_factory or self._default_synthesizer
        self._synthesizer: Synthesizer | None = None
        self._player = player
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="speech-output")
        self._pending: set[Future[None]] = set()
        self._pending_lock = threading.Lock()
        self._error_callback: ErrorCallback | None = None

    def bind_errors(self, callback: ErrorCallback | None) -> None:
        """Register the callback receiving synthesis failures."""
        self._error_callback = callback

    def speak(self, text: str) -> None:
        """Queue ``text`` for synthesis and return immediately."""
        text = (text or "").strip()
        if not text:
            return
        future = self._executor.submit(self._render, text)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for submitted utterances to be synthesized and played."""
        with self._pending_lock:
            pending = set(self._pending)
        if pending:
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False
        wait_idle = getattr(self._player, "wait_idle", None)
        if wait_idle is not None:
            return bool(wait_idle(timeout))
        return True

    def shutdown(self) -> None:
        """Drop queued utterances and silence the player."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self._player is not None:
            self._player.stop()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _render(self, text: str) -> None:
        try:
            synthesizer = self._ensure_synthesizer()
            player = self._ensure_player()
            for pcm, sample_rate, channels in synthesizer.synthesize_stream(text):
                player.play(pcm, sample_rate, channels)
        except Exception as exc:
            LOGGER.warning("Speech output failed: %s", exc)
            callback = self._error_callback
            if callback is not None:
                callback(SpeechOutputError(str(exc) or type(exc).__name__))

    def _on_done(self, future: Future[None]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _ensure_synthesizer(self) -> Synthesizer:
        """Load the voice on first use."""
        with self._lock:
            if self._synthesizer is None:
                self._synthesizer = self._synthesizer_factory()
            return self._synthesizer

    def _ensure_player(self) -> Player:
        with self._lock:
            if self._player is None:
                from .playback import PlaybackConfig, SpeechPlayback

                self._player = SpeechPlayback(PlaybackConfig(device_name=self.settings.output_device))
            return self._player

    def _default_synthesizer(self) -> Synthesizer:
        from .tts import PiperConfig, PiperTTS

        if self.settings.tts_model_path:
            model_path = Path(self.settings.tts_model_path)
        else:
            model_path = find_model(models_dir() / "tts", ".onnx")
        return PiperTTS(PiperConfig(model_path=model_path, length_scale=self.settings.tts_length_scale))
