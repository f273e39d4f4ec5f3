from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import auto_paste
from auto_paste import ClipboardTextSink
from errors import NO_ACTIVE_TARGET


@pytest.fixture
def fake_keys(monkeypatch):  # noqa: ANN001, ANN201
    keyboard = MagicMock()
    keys = SimpleNamespace(ctrl="ctrl", cmd="cmd", enter="enter", space="space", backspace="backspace")
    monkeypatch.setattr(auto_paste, "Controller", MagicMock(return_value=keyboard))
    monkeypatch.setattr(auto_paste, "Key", keys)
    return keyboard


@pytest.fixture
def clipboard(monkeypatch):  # noqa: ANN001, ANN201
    clip = MagicMock()
    clip.paste.return_value = "previous"
    monkeypatch.setattr(auto_paste, "pyperclip", clip)
    return clip


def test_paste_returns_failure_when_dependencies_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "pyperclip", None)
    monkeypatch.setattr(auto_paste, "Controller", None)
    monkeypatch.setattr(auto_paste, "Key", None)

    result = ClipboardTextSink().insert("hello")

    assert result.success is False
    assert result.clipboard_restored is False


def test_paste_returns_failure_on_empty_text() -> None:
    result = ClipboardTextSink().insert("")

    assert result.success is False
    assert result.clipboard_restored is True


def test_paste_swaps_and_restores_clipboard(monkeypatch, fake_keys, clipboard) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste.sys, "platform", "linux")

    result = ClipboardTextSink(restore_delay_s=0).insert("hello ")

    assert result.success is True
    assert [c.args[0] for c in clipboard.copy.call_args_list] == ["hello ", "previous"]
    fake_keys.pressed.assert_called_once_with("ctrl")
    fake_keys.press.assert_called_once_with("v")


def test_paste_uses_command_key_on_macos(monkeypatch, fake_keys, clipboard) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste.sys, "platform", "darwin")

    ClipboardTextSink(restore_delay_s=0).insert("hello")

    fake_keys.pressed.assert_called_once_with("cmd")


def test_paste_failure_reports_missing_target(fake_keys, clipboard) -> None:  # noqa: ANN001
    fake_keys.press.side_effect = OSError("no focused window")

    result = ClipboardTextSink(restore_delay_s=0).insert("hello")

    assert result.success is False
    assert result.reason.startswith(NO_ACTIVE_TARGET)
    assert result.clipboard_restored is True
    assert clipboard.copy.call_args_list[-1].args[0] == "previous"


def test_key_taps(fake_keys) -> None:  # noqa: ANN001
    sink = ClipboardTextSink()

    sink.send_enter()
    sink.insert_space()
    sink.delete_backward()

    assert [c.args[0] for c in fake_keys.tap.call_args_list] == ["enter", "space", "backspace"]


def test_key_tap_requires_pynput(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(auto_paste, "Controller", None)

    with pytest.raises(RuntimeError, match="pynput"):
        ClipboardTextSink().send_enter()
