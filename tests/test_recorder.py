"""Tests for SoundDeviceAudioDevice."""

from __future__ import annotations

import wave
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from recorder import SoundDeviceAudioDevice


def _block(n_samples: int = 1600, peak: int = 0) -> np.ndarray:
    data = np.zeros((n_samples, 1), dtype=np.int16)
    if peak:
        data[n_samples // 2, 0] = -peak
    return data


# ---------------------------------------------------------------
# acquire / finalize
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_acquire_opens_and_starts_stream(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    device = SoundDeviceAudioDevice(sample_rate=16000, channels=1, chunk_ms=100)
    handle = device.acquire(tmp_path / "rec.wav")

    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["dtype"] == "int16"
    assert kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()

    device.finalize(handle)
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_captured_frames_are_written_as_wav(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    device = SoundDeviceAudioDevice()
    handle = device.acquire(tmp_path / "rec.wav")
    device._on_audio(handle, _block(1600), 1600, None, None)
    device._on_audio(handle, _block(1600), 1600, None, None)
    device.finalize(handle)

    with wave.open(str(tmp_path / "rec.wav"), "rb") as wf:
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 16000
        assert wf.getnframes() == 3200


@patch("recorder.sd")
def test_sample_amplitude_reports_and_resets_peak(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    device = SoundDeviceAudioDevice()
    handle = device.acquire(tmp_path / "rec.wav")
    device._on_audio(handle, _block(peak=900), 1600, None, None)
    device._on_audio(handle, _block(peak=300), 1600, None, None)

    assert device.sample_amplitude(handle) == 900
    assert device.sample_amplitude(handle) == 0

    device.release(handle)


@patch("recorder.sd")
def test_callback_after_finalize_is_noop(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    device = SoundDeviceAudioDevice()
    handle = device.acquire(tmp_path / "rec.wav")
    device.finalize(handle)

    device._on_audio(handle, _block(1600), 1600, None, None)
    assert handle.frames_written == 0


@patch("recorder.sd")
def test_release_is_idempotent(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    device = SoundDeviceAudioDevice()
    handle = device.acquire(tmp_path / "rec.wav")
    device.release(handle)
    device.release(handle)

    mock_stream.close.assert_called_once()


# ---------------------------------------------------------------
# failures
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_stream_start_failure_releases_everything(mock_sd: MagicMock, tmp_path: Path) -> None:
    mock_stream = MagicMock()
    mock_stream.start.side_effect = RuntimeError("device busy")
    mock_sd.InputStream.return_value = mock_stream

    device = SoundDeviceAudioDevice()
    with pytest.raises(RuntimeError, match="device busy"):
        device.acquire(tmp_path / "rec.wav")

    mock_stream.close.assert_called_once()


def test_acquire_raises_without_sounddevice(monkeypatch, tmp_path: Path) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    device = SoundDeviceAudioDevice()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        device.acquire(tmp_path / "rec.wav")
