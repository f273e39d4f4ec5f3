"""Overlay window showing dictation mode, microphone level and errors."""

from __future__ import annotations

import math

from models import Mode

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtGui import QGuiApplication
    from PySide6.QtWidgets import QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QGuiApplication = None  # type: ignore
    QLabel = QProgressBar = QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

AMPLITUDE_CLAMP_MIN = 10
AMPLITUDE_CLAMP_MAX = 25000

IDLE_HIDE_MS = 400
ERROR_HIDE_MS = 2500
TOP_MARGIN_PX = 40

MODE_LABELS = {
    Mode.IDLE: "Whisper Input",
    Mode.RECORDING: "🎙️ Recording...",
    Mode.TRANSCRIBING: "⏳ Transcribing...",
}

_PANEL_STYLE = (
    "color: {color}; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,{alpha}); border-radius: 12px;"
)


def normalized_power(amplitude: int) -> float:
    """Map a raw peak amplitude onto 0..1 on a log10 (decibel-like) scale."""
    clamped = min(max(amplitude, AMPLITUDE_CLAMP_MIN), AMPLITUDE_CLAMP_MAX)
    low = math.log10(AMPLITUDE_CLAMP_MIN)
    high = math.log10(AMPLITUDE_CLAMP_MAX)
    return (math.log10(clamped) - low) / (high - low)


class OverlayWindow(QWidget):
    """Frameless always-on-top panel pinned to the top of the primary screen."""

    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__(None, Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(420)

        self._message = QLabel()
        self._message.setWordWrap(True)
        self._level = QProgressBar()
        self._level.setRange(0, 100)
        self._level.setTextVisible(False)
        self._level.setFixedHeight(6)
        self._level.setVisible(False)

        column = QVBoxLayout(self)
        column.setContentsMargins(0, 0, 0, 0)
        column.addWidget(self._message)
        column.addWidget(self._level)

        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self._on_hide_timeout)
        self._error_visible = False
        self._apply_style(error=False)

    def show_mode(self, mode: Mode) -> None:
        if mode == Mode.IDLE and self._error_visible:
            # Leave the error up until its own timer hides it.
            return
        self._error_visible = False
        self._apply_style(error=False)
        self._level.setValue(0)
        self._level.setVisible(mode == Mode.RECORDING)
        self._message.setText(MODE_LABELS[mode])
        if mode == Mode.IDLE:
            self.hide_with_delay(IDLE_HIDE_MS)
        else:
            self._present()

    def set_level(self, amplitude: int) -> None:
        self._level.setValue(round(normalized_power(amplitude) * 100))

    def show_error(self, text: str, hide_after_ms: int = ERROR_HIDE_MS) -> None:
        self._error_visible = True
        self._apply_style(error=True)
        self._level.setVisible(False)
        self._message.setText(f"⚠️ {text}")
        self._present()
        self.hide_with_delay(hide_after_ms)

    def hide_with_delay(self, delay_ms: int = IDLE_HIDE_MS) -> None:
        self._hide_timer.start(delay_ms)

    def _present(self) -> None:
        self._hide_timer.stop()
        self.adjustSize()
        screen = QGuiApplication.primaryScreen()
        if screen is not None:
            area = screen.availableGeometry()
            self.move(area.center().x() - self.width() // 2, area.top() + TOP_MARGIN_PX)
        self.show()

    def _on_hide_timeout(self) -> None:
        self._error_visible = False
        self.hide()

    def _apply_style(self, error: bool) -> None:
        if error:
            self._message.setStyleSheet(_PANEL_STYLE.format(color="#FF6B6B", alpha=210))
        else:
            self._message.setStyleSheet(_PANEL_STYLE.format(color="white", alpha=190))
