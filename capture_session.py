"""Lifecycle of a single audio capture.

A ``CaptureSession`` owns at most one live ``CaptureHandle``. Starting a new
capture forcibly terminates the previous one, and every exit path (stop,
discard, failed acquisition) releases the device.

Very short captures produce unusable files on some platforms, so ``stop``
tops the recording up to ``min_duration_s``. Captures shorter than
``corrupt_threshold_s`` are discarded even after the top-up.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from errors import AcquisitionError, CaptureTooShortError
from interfaces import AudioDevice
from models import CaptureHandle

logger = logging.getLogger(__name__)

AmplitudeCallback = Callable[[int], None]

MIN_RECORDING_DURATION_S = 1.0
CORRUPT_RECORDING_DURATION_S = 0.5
AMPLITUDE_SAMPLE_INTERVAL_S = 0.15


class CaptureSession:
    def __init__(
        self,
        device: AudioDevice,
        min_duration_s: float = MIN_RECORDING_DURATION_S,
        corrupt_threshold_s: float = CORRUPT_RECORDING_DURATION_S,
        sample_interval_s: float = AMPLITUDE_SAMPLE_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._device = device
        self._min_duration_s = min_duration_s
        self._corrupt_threshold_s = corrupt_threshold_s
        self._sample_interval_s = sample_interval_s
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._handle: Optional[CaptureHandle] = None
        self._sampler: Optional[threading.Thread] = None
        self._sampler_stop: Optional[threading.Event] = None

    @property
    def is_active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[CaptureHandle]:
        return self._handle

    def start(
        self,
        destination: Path,
        on_amplitude: Optional[AmplitudeCallback] = None,
    ) -> CaptureHandle:
        """Acquire the device and begin writing to ``destination``.

        Raises:
            AcquisitionError: the device, the file or the encoder could not
                be set up. Nothing is held when this is raised.
        """
        destination = Path(destination)
        with self._lock:
            if self._handle is not None:
                logger.warning("Terminating previous capture of %s", self._handle.destination)
                self._terminate(self._handle, delete=False)

            try:
                if destination.exists():
                    logger.debug("Deleting stale artifact %s", destination)
                    destination.unlink()
                device_handle = self._device.acquire(destination)
            except Exception as exc:
                logger.error("Error starting recording: %s", exc)
                destination.unlink(missing_ok=True)
                raise AcquisitionError(f"Microphone could not be started: {exc}") from exc

            handle = CaptureHandle(
                destination=destination,
                started_at=self._clock(),
                device_handle=device_handle,
            )
            self._handle = handle
            self._start_sampler(handle, on_amplitude)
            logger.info("Recording started: %s", destination)
            return handle

    def stop(self) -> Path:
        """Finish the capture and return the artifact path.

        Raises:
            CaptureTooShortError: the recording was too short to be usable,
                or the platform failed to produce a non-empty artifact. The
                artifact has been deleted when this is raised.
        """
        with self._lock:
            handle = self._handle
            if handle is None:
                raise CaptureTooShortError("No recording in progress.")

            elapsed = self._clock() - handle.started_at
            logger.debug("Recording duration: %.0f ms", elapsed * 1000)
            if elapsed < self._min_duration_s:
                remaining = self._min_duration_s - elapsed
                logger.info(
                    "Recording too short (%.0f ms), waiting %.0f ms",
                    elapsed * 1000,
                    remaining * 1000,
                )
                self._sleep(remaining)

            if elapsed < self._corrupt_threshold_s:
                logger.warning("Recording extremely short, deleting %s", handle.destination)
                self._terminate(handle, delete=True)
                raise CaptureTooShortError()

            self._stop_sampler()
            finalize_failed = False
            try:
                self._device.finalize(handle.device_handle)
            except Exception:
                logger.warning("Error finalizing recording", exc_info=True)
                finalize_failed = True
            finally:
                self._release(handle)

            if finalize_failed:
                if not _has_content(handle.destination):
                    handle.destination.unlink(missing_ok=True)
                    raise CaptureTooShortError("Recording failed: no audio was captured.")
                logger.warning(
                    "Artifact exists despite stop failure, size: %d bytes",
                    handle.destination.stat().st_size,
                )

            logger.info("Recording stopped: %s", handle.destination)
            return handle.destination

    def discard(self) -> None:
        """Stop without the duration floor and delete the artifact."""
        with self._lock:
            handle = self._handle
            if handle is None:
                return
            logger.info("Discarding recording %s", handle.destination)
            self._terminate(handle, delete=True)

    def _terminate(self, handle: CaptureHandle, delete: bool) -> None:
        self._stop_sampler()
        try:
            self._device.finalize(handle.device_handle)
        except Exception:
            logger.warning("Error stopping recorder during cleanup", exc_info=True)
        finally:
            self._release(handle)
        if delete:
            try:
                handle.destination.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not delete %s", handle.destination, exc_info=True)

    def _release(self, handle: CaptureHandle) -> None:
        try:
            self._device.release(handle.device_handle)
        except Exception:
            logger.warning("Error releasing recorder", exc_info=True)
        handle.running = False
        if self._handle is handle:
            self._handle = None

    # ------------------------------------------------------------------
    # Amplitude sampling
    # ------------------------------------------------------------------

    def _start_sampler(
        self,
        handle: CaptureHandle,
        on_amplitude: Optional[AmplitudeCallback],
    ) -> None:
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._sample_loop,
            args=(handle, on_amplitude, stop_event),
            name="amplitude-sampler",
            daemon=True,
        )
        self._sampler_stop = stop_event
        self._sampler = thread
        thread.start()

    def _stop_sampler(self) -> None:
        stop_event, thread = self._sampler_stop, self._sampler
        self._sampler_stop = None
        self._sampler = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=0.5)

    def _sample_loop(
        self,
        handle: CaptureHandle,
        on_amplitude: Optional[AmplitudeCallback],
        stop_event: threading.Event,
    ) -> None:
        while not stop_event.wait(self._sample_interval_s):
            try:
                amplitude = self._device.sample_amplitude(handle.device_handle)
                handle.last_amplitude = amplitude
                if on_amplitude is not None:
                    on_amplitude(amplitude)
            except Exception:
                logger.warning("Error in amplitude monitoring", exc_info=True)
        logger.debug("Amplitude monitoring stopped")


def _has_content(path: Path) -> bool:
    try:
        return path.exists() and path.stat().st_size > 0
    except OSError:
        return False
