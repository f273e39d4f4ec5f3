"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from models import DictationSettings

logger = logging.getLogger(__name__)

_FIELD_NAMES = frozenset(f.name for f in fields(DictationSettings))


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "whisper_input" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_settings(self) -> DictationSettings:
        data = self._read_all()
        defaults = asdict(DictationSettings())
        values: dict[str, Any] = {}
        for name, default in defaults.items():
            raw = data.get(name, default)
            try:
                values[name] = _coerce(raw, default)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid config value for %s: %r", name, raw)
                values[name] = default
        return DictationSettings(**values)

    def update(self, **changes: Any) -> DictationSettings:
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise KeyError(f"unknown settings: {', '.join(sorted(unknown))}")
        data = self._read_all()
        data.update(changes)
        self._write_all(data)
        return self.get_settings()

    def get_hotkey(self) -> str:
        return self.get_settings().hotkey

    def set_hotkey(self, hotkey: str) -> None:
        self.update(hotkey=hotkey)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Config file %s is unreadable, using defaults", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, float):
        return float(value)
    return str(value)
