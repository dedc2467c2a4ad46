"""Wiring of the session components and entry point for the desktop window."""

from __future__ import annotations

import asyncio
from typing import Optional

from .audio.capture import SpeechCapture
from .audio.speech import SpeechOutput
from .config.settings import Settings, get_settings
from .core.logger import configure_logging
from .runtime.controller import InteractionController
from .services.api import CommandDispatcher


def build_controller(
    settings: Settings | None = None,
    *,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> InteractionController:
    """Construct a controller owning real capture, dispatch and speech components."""
    settings = settings or get_settings()
    return InteractionController(
        SpeechCapture(settings),
        CommandDispatcher(settings),
        SpeechOutput(settings),
        settings=settings,
        loop=loop,
    )


def run(settings: Settings | None = None) -> int:
    """Start the voice UI."""
    from PySide6.QtWidgets import QApplication

    from .ui.main_window import VoiceMainWindow

    settings = settings or get_settings()
    configure_logging(settings)
    app = QApplication.instance() or QApplication([])
    controller = build_controller(settings)
    controller.start()
    window = VoiceMainWindow(controller)
    window.show()
    return app.exec()
