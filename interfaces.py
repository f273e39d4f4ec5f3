"""Protocol interfaces used by SessionController and its components."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from models import DictationSettings, Mode, PasteResult


class AudioDevice(Protocol):
    def acquire(self, destination: Path) -> Any: ...

    def finalize(self, handle: Any) -> None: ...

    def release(self, handle: Any) -> None: ...

    def sample_amplitude(self, handle: Any) -> int: ...


class TextSink(Protocol):
    def insert(self, text: str) -> PasteResult: ...

    def delete_backward(self) -> None: ...

    def send_enter(self) -> None: ...

    def insert_space(self) -> None: ...


class UIObserver(Protocol):
    def on_mode_changed(self, mode: Mode) -> None: ...

    def on_amplitude(self, value: int) -> None: ...

    def on_error(self, message: str) -> None: ...


class ConfigStore(Protocol):
    def get_settings(self) -> DictationSettings: ...
