"""Host text-field adapter: clipboard paste plus synthetic key presses."""

from __future__ import annotations

import logging
import sys
import time
from typing import Optional

from errors import NO_ACTIVE_TARGET
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


def _paste_modifier() -> object:
    return Key.cmd if sys.platform == "darwin" else Key.ctrl


class ClipboardTextSink:
    """Inserts text into the focused field by pasting it.

    The previous clipboard content is put back after ``restore_delay_s`` so
    the host application has time to read the pasted text first.
    """

    def __init__(self, restore_delay_s: float = 0.1) -> None:
        self._restore_delay_s = restore_delay_s

    def insert(self, text: str) -> PasteResult:
        if not text:
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        saved: Optional[str] = None
        try:
            saved = pyperclip.paste()
            pyperclip.copy(text)
            self._chord(_paste_modifier(), "v")
            time.sleep(self._restore_delay_s)
        except Exception as exc:
            logger.warning("Paste into focused field failed: %s", exc)
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=self._restore(saved),
            )
        return PasteResult(success=True, reason="ok", clipboard_restored=self._restore(saved))

    def delete_backward(self) -> None:
        self._tap("backspace")

    def send_enter(self) -> None:
        self._tap("enter")

    def insert_space(self) -> None:
        self._tap("space")

    def _restore(self, saved: Optional[str]) -> bool:
        if saved is None:
            return False
        try:
            pyperclip.copy(saved)
        except Exception:
            logger.warning("Could not restore clipboard", exc_info=True)
            return False
        return True

    def _chord(self, modifier: object, key: str) -> None:
        keyboard = Controller()
        with keyboard.pressed(modifier):
            keyboard.press(key)
            keyboard.release(key)

    def _tap(self, key_name: str) -> None:
        if Controller is None or Key is None:
            raise RuntimeError("pynput is not installed")
        Controller().tap(getattr(Key, key_name))
