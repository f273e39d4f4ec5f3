"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

SUFFIX_NONE = ""
SUFFIX_SPACE = " "
SUFFIX_ENTER = "\r\n"


class Mode(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"


class ResultKind(str, Enum):
    TEXT = "text"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class CaptureHandle:
    destination: Path
    started_at: float
    running: bool = True
    last_amplitude: int = 0
    device_handle: Any = None


@dataclass
class TranscriptionRequest:
    audio_path: Path
    suffix: str
    generation: int


@dataclass
class TranscriptionResult:
    kind: str
    generation: int
    text: str = ""
    code: str = ""
    message: str = ""

    @classmethod
    def text_result(cls, generation: int, text: str) -> "TranscriptionResult":
        return cls(kind=ResultKind.TEXT.value, generation=generation, text=text)

    @classmethod
    def cancelled(cls, generation: int) -> "TranscriptionResult":
        return cls(kind=ResultKind.CANCELLED.value, generation=generation)

    @classmethod
    def failed(cls, generation: int, code: str, message: str) -> "TranscriptionResult":
        return cls(
            kind=ResultKind.FAILED.value,
            generation=generation,
            code=code,
            message=message,
        )


@dataclass(frozen=True)
class DictationSettings:
    endpoint: str = ""
    language_code: str = "auto"
    request_style_openai: bool = True
    api_key: str = ""
    prompt: str = ""
    auto_start: bool = True
    model: str = "gpt-4o-mini-transcribe"
    connect_timeout_s: float = 10.0
    write_timeout_s: float = 60.0
    read_timeout_s: float = 60.0
    call_timeout_s: float = 120.0
    hotkey: str = "Key.alt_r"
    cancel_hotkey: str = "Key.esc"
    # Empty means unbound.
    enter_hotkey: str = ""
    space_hotkey: str = ""
    backspace_hotkey: str = ""


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
