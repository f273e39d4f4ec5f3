"""Microphone device adapter writing captured audio to a WAV file."""

from __future__ import annotations

import logging
import threading
import wave
from pathlib import Path
from typing import Any, Optional

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

AUDIO_MEDIA_TYPE = "audio/wav"


class _StreamHandle:
    """One open input stream plus the WAV writer it feeds."""

    def __init__(self, destination: Path, writer: wave.Wave_write) -> None:
        self.destination = destination
        self.writer: Optional[wave.Wave_write] = writer
        self.stream: Any = None
        self.peak = 0
        self.frames_written = 0
        self.lock = threading.Lock()


class SoundDeviceAudioDevice:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms

    def acquire(self, destination: Path) -> _StreamHandle:
        if sd is None:
            raise RuntimeError("sounddevice is not installed")
        if np is None:
            raise RuntimeError("numpy is not installed")
        writer = wave.open(str(destination), "wb")
        writer.setnchannels(self.channels)
        writer.setsampwidth(2)
        writer.setframerate(self.sample_rate)
        handle = _StreamHandle(destination, writer)
        try:
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            handle.stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=lambda indata, frames, time_info, status: self._on_audio(
                    handle, indata, frames, time_info, status
                ),
            )
            handle.stream.start()
        except Exception:
            self.release(handle)
            raise
        logger.debug("Input stream opened for %s", destination)
        return handle

    def finalize(self, handle: _StreamHandle) -> None:
        stream = handle.stream
        handle.stream = None
        if stream is not None:
            stream.stop()
            stream.close()
        with handle.lock:
            writer = handle.writer
            handle.writer = None
        if writer is not None:
            writer.close()
        logger.debug("Finalized %s (%d frames)", handle.destination, handle.frames_written)

    def release(self, handle: _StreamHandle) -> None:
        stream = handle.stream
        handle.stream = None
        if stream is not None:
            try:
                stream.close()
            except Exception:
                logger.warning("Error closing input stream", exc_info=True)
        with handle.lock:
            writer = handle.writer
            handle.writer = None
        if writer is not None:
            try:
                writer.close()
            except Exception:
                logger.warning("Error closing WAV writer", exc_info=True)

    def sample_amplitude(self, handle: _StreamHandle) -> int:
        with handle.lock:
            peak = handle.peak
            handle.peak = 0
        return peak

    def _on_audio(
        self,
        handle: _StreamHandle,
        indata: Any,
        frames: int,
        time_info: Any,
        status: Any,
    ) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        samples = np.asarray(indata, dtype=np.int16)
        peak = int(np.abs(samples.astype(np.int32)).max()) if samples.size else 0
        with handle.lock:
            if handle.writer is None:
                return
            handle.writer.writeframes(samples.tobytes())
            handle.frames_written += frames
            if peak > handle.peak:
                handle.peak = peak
