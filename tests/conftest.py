"""Shared fakes for capture and controller tests."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest


class FakeClock:
    """Monotonic clock whose sleep() only advances virtual time."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeAudioDevice:
    """AudioDevice that writes ``payload`` to the destination on finalize."""

    def __init__(self, payload: bytes = b"RIFF-fake-audio", amplitude: int = 1200) -> None:
        self.payload = payload
        self.amplitude = amplitude
        self.acquire_error: Optional[Exception] = None
        self.finalize_error: Optional[Exception] = None
        self.write_before_finalize_error = False
        self.acquired: list[Path] = []
        self.finalized: list[dict] = []
        self.released: list[dict] = []

    @property
    def live_handles(self) -> int:
        return len(self.acquired) - len(self.released)

    def acquire(self, destination: Path) -> dict:
        if self.acquire_error is not None:
            raise self.acquire_error
        destination.write_bytes(b"")
        self.acquired.append(destination)
        return {"path": destination}

    def finalize(self, handle: dict) -> None:
        if self.finalize_error is not None:
            if self.write_before_finalize_error:
                handle["path"].write_bytes(self.payload)
            raise self.finalize_error
        handle["path"].write_bytes(self.payload)
        self.finalized.append(handle)

    def release(self, handle: dict) -> None:
        self.released.append(handle)

    def sample_amplitude(self, handle: dict) -> int:
        return self.amplitude


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def device() -> FakeAudioDevice:
    return FakeAudioDevice()
