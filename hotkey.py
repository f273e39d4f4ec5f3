"""Global hotkey adapter based on pynput."""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Mapping, Optional

from models import DictationSettings

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


def controller_bindings(
    settings: DictationSettings,
    controller: Any,
    run: Callable[[Callable[[], object]], None],
) -> dict[str, Callable[[], None]]:
    """Map the configured key names onto controller intents, each started via ``run``."""
    intents = (
        (settings.hotkey, controller.mic_tap),
        (settings.cancel_hotkey, controller.try_cancel),
        (settings.enter_hotkey, controller.press_enter),
        (settings.space_hotkey, controller.press_space),
        (settings.backspace_hotkey, controller.press_backspace),
    )
    bindings: dict[str, Callable[[], None]] = {}
    for name, intent in intents:
        if not name:
            continue
        if name in bindings:
            logger.warning("Key %s is bound twice, keeping the first binding", name)
            continue
        bindings[name] = functools.partial(run, intent)
    return bindings


class GlobalHotkeyAdapter:
    """Fires a callback once per tap of each bound key.

    Key names use pynput's ``str(key)`` form, e.g. ``Key.alt_r``. Auto-repeat
    while a key is held does not fire again until it is released.
    """

    def __init__(self, bindings: Mapping[str, Callable[[], None]]) -> None:
        self._bindings = dict(bindings)
        self._listener: Optional[object] = None
        self._pressed: set[str] = set()
        self._lock = threading.Lock()

    def start(self) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()
        logger.info("Hotkeys bound: %s", ", ".join(sorted(self._bindings)))

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def _on_press(self, key: object) -> None:
        name = str(key)
        callback = self._bindings.get(name)
        if callback is None:
            return
        with self._lock:
            if name in self._pressed:
                return
            self._pressed.add(name)
        callback()

    def _on_release(self, key: object) -> None:
        with self._lock:
            self._pressed.discard(str(key))
