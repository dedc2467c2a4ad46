"""Main window for the voice console."""

from __future__ import annotations

from PySide6.QtCore import Q_ARG, QMetaObject, QPointF, Qt, QTimer, Slot
from PySide6.QtGui import QBrush, QColor, QPainter, QPen, QPolygonF
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QListWidget,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..runtime.controller import InteractionController
from ..runtime.indicator import IndicatorLoop, VisualFrame
from ..services.schemas import TranscriptEntry
from ..state.app_state import ErrorFlash, StatusView

START_LABEL = "Start Listening"
STOP_LABEL = "Stop Listening"


class IndicatorWidget(QWidget):
    """Canvas painting the listening waveform, repainted by its own loop."""

    def __init__(self, controller: InteractionController, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._frame: VisualFrame | None = None
        self.setMinimumHeight(70)
        self.setMaximumHeight(90)
        settings = controller.settings
        self._loop = IndicatorLoop(
            render=self._apply_frame,
            schedule=lambda delay, callback: QTimer.singleShot(delay, callback),
            is_listening=lambda: controller.listening,
            size=lambda: (self.width(), self.height()),
            interval_ms=settings.indicator_interval_ms,
            amplitude=settings.indicator_amplitude,
        )

    def start(self) -> None:
        self._loop.start()

    def _apply_frame(self, frame: VisualFrame) -> None:
        self._frame = frame
        self.update()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QBrush(QColor(8, 9, 22)))
        frame = self._frame
        if frame is None or len(frame.points) < 2:
            return
        painter.setPen(QPen(QColor(frame.color), 2 if frame.listening else 1))
        painter.drawPolyline(QPolygonF([QPointF(x, y) for x, y in frame.points]))


class VoiceMainWindow(QMainWindow):
    """Toggle control, status badge, transcript view and listening indicator."""

    def __init__(self, controller: InteractionController) -> None:
        super().__init__()
        self.controller = controller
        self.setWindowTitle(f"{controller.settings.assistant_name} Voice Console")
        self.setMinimumSize(640, 480)

        self._status_label = QLabel(controller.status.text)
        self._status_label.setObjectName("statusBadge")
        self._status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._indicator = IndicatorWidget(controller, self)
        self._history = QListWidget()
        self._history.setObjectName("history")
        self._history.setSelectionMode(QListWidget.SelectionMode.NoSelection)
        self._history.setWordWrap(True)
        self._toggle_button = QPushButton(START_LABEL)
        self._toggle_button.setObjectName("toggleButton")
        self._toggle_button.clicked.connect(self._on_toggle_clicked)

        self._error_timer = QTimer(self)
        self._error_timer.setSingleShot(True)
        self._error_timer.setInterval(max(0, controller.settings.error_flash_ms))
        self._error_timer.timeout.connect(self._flush_pending_status)
        self._flash = ErrorFlash()

        self._build_layout()
        self._apply_theme()
        self._show_status(controller.status)

        for entry in reversed(controller.log.entries()):
            self._prepend_entry(controller.log.render(entry))
        controller.log.subscribe(self._handle_entry)
        controller.set_status_callback(self._handle_status)
        self._indicator.start()

    # ------------------------------------------------------------------ #
    # UI construction
    # ------------------------------------------------------------------ #
    def _build_layout(self) -> None:
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(18)

        header = QHBoxLayout()
        header.addWidget(self._toggle_button)
        header.addStretch(1)
        header.addWidget(self._status_label)
        layout.addLayout(header)
        layout.addWidget(self._indicator)
        layout.addWidget(self._history, 1)

        self.setCentralWidget(container)

    def _apply_theme(self) -> None:
        self.setStyleSheet(
            """
            QWidget {
                background-color: #060710;
                color: #e9edff;
                font-family: 'Segoe UI', 'Inter', sans-serif;
            }
            QPushButton#toggleButton {
                background-color: #0d6efd;
                border-radius: 6px;
                padding: 8px 18px;
            }
            QPushButton#toggleButton[listening="true"] {
                background-color: #dc3545;
            }
            QLabel#statusBadge {
                border-radius: 6px;
                padding: 4px 10px;
                background-color: #6c757d;
            }
            QLabel#statusBadge[tone="listening"], QLabel#statusBadge[tone="error"] {
                background-color: #dc3545;
            }
            QLabel#statusBadge[tone="processing"] {
                background-color: #ffc107;
                color: #212529;
            }
            QListWidget#history {
                border: 1px solid #1f2238;
                border-radius: 8px;
            }
            """
        )

    # ------------------------------------------------------------------ #
    # Controller callbacks (thread safe updates)
    # ------------------------------------------------------------------ #
    def _handle_status(self, status: StatusView) -> None:
        QMetaObject.invokeMethod(
            self,
            "_apply_status",
            Qt.QueuedConnection,
            Q_ARG(str, status.text),
            Q_ARG(str, status.tone),
        )

    def _handle_entry(self, entry: TranscriptEntry) -> None:
        QMetaObject.invokeMethod(
            self,
            "_prepend_entry",
            Qt.QueuedConnection,
            Q_ARG(str, self.controller.log.render(entry)),
        )

    @Slot(str, str)
    def _apply_status(self, text: str, tone: str) -> None:
        shown = self._flash.push(StatusView(text, tone))  # type: ignore[arg-type]
        if shown is None:
            return
        if shown.tone == "error":
            self._error_timer.start()
        else:
            self._error_timer.stop()
        self._show_status(shown)

    @Slot()
    def _flush_pending_status(self) -> None:
        held = self._flash.expire()
        if held is not None:
            self._show_status(held)

    @Slot(str)
    def _prepend_entry(self, line: str) -> None:
        self._history.insertItem(0, line)

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #
    def _show_status(self, status: StatusView) -> None:
        self._status_label.setText(status.text)
        self._status_label.setProperty("tone", status.tone)
        listening = status.tone == "listening"
        self._toggle_button.setText(STOP_LABEL if listening else START_LABEL)
        self._toggle_button.setProperty("listening", "true" if listening else "false")
        self._toggle_button.setEnabled(status.tone != "processing")
        for widget in (self._status_label, self._toggle_button):
            widget.style().unpolish(widget)
            widget.style().polish(widget)

    def _on_toggle_clicked(self) -> None:
        self.controller.request_toggle()

    # ------------------------------------------------------------------ #
    # Qt event overrides
    # ------------------------------------------------------------------ #
    def closeEvent(self, event) -> None:  # type: ignore[override]
        self.controller.set_status_callback(None)
        self.controller.shutdown()
        shutdown = getattr(self.controller.speech, "shutdown", None)
        if shutdown is not None:
            shutdown()
        super().closeEvent(event)
