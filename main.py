"""Desktop entrypoint: tray icon, overlay and global hotkeys around the controller."""

from __future__ import annotations

import functools
import logging
import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable

from auto_paste import ClipboardTextSink
from capture_session import CaptureSession
from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter, controller_bindings
from models import Mode
from overlay import OverlayWindow
from recorder import SoundDeviceAudioDevice
from session_controller import SessionController
from transcriber import TranscriptionJob

try:
    from PySide6.QtCore import QObject, Qt, Signal, Slot
    from PySide6.QtGui import QAction, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

APP_NAME = "Whisper Input"
RECORDED_AUDIO_FILENAME = "recorded.wav"

MODE_COLORS = {
    Mode.IDLE: "#888888",
    Mode.RECORDING: "#FF4444",
    Mode.TRANSCRIBING: "#4488FF",
}

# (settings field, menu label, prompt)
EDITABLE_SETTINGS = (
    ("endpoint", "Set Endpoint", "Transcription endpoint URL"),
    ("api_key", "Set API Key", "API key (OpenAI-style endpoints only)"),
    ("language_code", "Set Language", "Language code (auto, en, zh, ...)"),
    ("prompt", "Set Prompt", "Vocabulary hint sent with each request"),
    ("enter_hotkey", "Set Enter Key", "pynput key name for stop-and-Enter (empty to unbind)"),
    ("space_hotkey", "Set Space Key", "pynput key name for stop-and-space (empty to unbind)"),
    ("backspace_hotkey", "Set Backspace Key", "pynput key name for backspace (empty to unbind)"),
)


@functools.lru_cache(maxsize=None)
def _mode_icon(mode: Mode, size: int = 22) -> QIcon:
    """Filled dot in the mode's color."""
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.transparent)
    color = QColor(MODE_COLORS[mode])
    painter = QPainter(pixmap)
    try:
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.setPen(color)
        painter.setBrush(color)
        painter.drawEllipse(pixmap.rect().adjusted(2, 2, -2, -2))
    finally:
        painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    """Observer that forwards core callbacks to the Qt thread via signals."""

    mode_signal = Signal(object)
    amplitude_signal = Signal(int)
    error_signal = Signal(str)
    invoke_signal = Signal(object)

    def on_mode_changed(self, mode: Mode) -> None:
        self.mode_signal.emit(mode)

    def on_amplitude(self, value: int) -> None:
        self.amplitude_signal.emit(value)

    def on_error(self, message: str) -> None:
        self.error_signal.emit(message)

    def dispatch(self, fn: Callable[[], None]) -> None:
        self.invoke_signal.emit(fn)

    @Slot(object)
    def run_on_ui_thread(self, fn: Callable[[], None]) -> None:
        fn()


def _in_background(target: Callable[[], object]) -> None:
    # Stopping may wait for the minimum recording duration; keep that off
    # the Qt main thread.
    threading.Thread(target=target, daemon=True).start()


class App:
    def __init__(self) -> None:
        self.qt_app = QApplication(sys.argv)
        self.qt_app.setQuitOnLastWindowClosed(False)
        self.settings_store = JsonConfigStore()
        self.overlay = OverlayWindow()

        self.bridge = UIBridge()
        self.bridge.mode_signal.connect(self._on_mode_ui)
        self.bridge.amplitude_signal.connect(self.overlay.set_level)
        self.bridge.error_signal.connect(self.overlay.show_error)
        self.bridge.invoke_signal.connect(self.bridge.run_on_ui_thread)

        recording_path = Path(tempfile.gettempdir()) / "whisper_input" / RECORDED_AUDIO_FILENAME
        recording_path.parent.mkdir(parents=True, exist_ok=True)
        self.controller = SessionController(
            capture=CaptureSession(SoundDeviceAudioDevice()),
            transcriber=TranscriptionJob(self.settings_store, dispatch=self.bridge.dispatch),
            text_sink=ClipboardTextSink(),
            config_store=self.settings_store,
            recording_path=recording_path,
            observer=self.bridge,
        )

        settings = self.settings_store.get_settings()
        self.hotkeys = GlobalHotkeyAdapter(
            controller_bindings(settings, self.controller, run=_in_background)
        )

        self.tray = QSystemTrayIcon(_mode_icon(Mode.IDLE))
        self.tray.setToolTip(f"{APP_NAME} - Ready")
        self.tray.setContextMenu(self._build_menu())
        self.tray.show()

    def _build_menu(self) -> QMenu:
        menu = QMenu()
        self.retry_action = self._add_action(menu, "Retry last recording", self.controller.retry)
        self.retry_action.setEnabled(self.controller.can_retry)
        for label, intent in (
            ("Stop and press Enter", self.controller.press_enter),
            ("Stop and insert space", self.controller.press_space),
            ("Backspace", self.controller.press_backspace),
        ):
            self._add_action(menu, label, functools.partial(_in_background, intent))
        menu.addSeparator()
        for key, label, prompt in EDITABLE_SETTINGS:
            self._add_action(menu, label, functools.partial(self._edit_setting, key, prompt))
        self._add_action(menu, "Set Hotkey", self._edit_hotkey)
        menu.addSeparator()
        self._add_action(menu, "Quit", self.quit)
        return menu

    @staticmethod
    def _add_action(menu: QMenu, label: str, slot: Callable[[], object]) -> QAction:
        action = QAction(label, menu)
        action.triggered.connect(lambda _checked=False: slot())
        menu.addAction(action)
        return action

    def _ask(self, field: str, prompt: str) -> str | None:
        current = getattr(self.settings_store.get_settings(), field)
        value, accepted = QInputDialog.getText(None, APP_NAME, prompt, text=str(current))
        return value.strip() if accepted else None

    def _edit_setting(self, field: str, prompt: str) -> None:
        value = self._ask(field, prompt)
        if value is None:
            return
        self.settings_store.update(**{field: value})
        logger.info("Setting %s updated", field)
        if field.endswith("_hotkey"):
            QMessageBox.information(None, APP_NAME, "Key saved. It takes effect after a restart.")

    def _edit_hotkey(self) -> None:
        value = self._ask("hotkey", "pynput key name, e.g. Key.alt_r")
        if not value:
            return
        self.settings_store.set_hotkey(value)
        QMessageBox.information(None, APP_NAME, "Hotkey saved. It takes effect after a restart.")

    def _on_mode_ui(self, mode: Mode) -> None:
        self.tray.setIcon(_mode_icon(mode))
        self.tray.setToolTip(f"{APP_NAME} - {mode.value.title()}")
        self.retry_action.setEnabled(mode == Mode.IDLE and self.controller.can_retry)
        self.overlay.show_mode(mode)

    def run(self) -> int:
        try:
            self.hotkeys.start()
        except RuntimeError as exc:
            logger.warning("Global hotkeys unavailable: %s", exc)
            self.overlay.show_error(f"Hotkeys unavailable: {exc}")
        self.controller.on_host_shown()
        return self.qt_app.exec()

    def quit(self) -> None:
        self.hotkeys.stop()
        self.controller.shutdown()
        self.qt_app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    return App().run()


if __name__ == "__main__":
    raise SystemExit(main())
