"""State-machine based session orchestration.

Modes move ``IDLE -> RECORDING -> TRANSCRIBING -> IDLE``. Every transition
runs under one re-entrant lock, so intents arriving from hotkey threads, the
UI thread and transcription workers are applied one at a time. Operations
that are not valid in the current mode return ``False`` without touching
anything.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from capture_session import CaptureSession
from errors import NO_ACTIVE_TARGET, DictationError
from interfaces import ConfigStore, TextSink, UIObserver
from models import (
    SUFFIX_ENTER,
    SUFFIX_NONE,
    SUFFIX_SPACE,
    Mode,
    PasteResult,
    ResultKind,
    TranscriptionResult,
)
from transcriber import TranscriptionJob

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(
        self,
        capture: CaptureSession,
        transcriber: TranscriptionJob,
        text_sink: TextSink,
        config_store: ConfigStore,
        recording_path: Path,
        observer: Optional[UIObserver] = None,
    ) -> None:
        self._capture = capture
        self._transcriber = transcriber
        self._text_sink = text_sink
        self._config_store = config_store
        self._recording_path = Path(recording_path)
        self._observer = observer

        self._lock = threading.RLock()
        self._state = Mode.IDLE
        self._session_id = 0
        self._first_show = True

    @property
    def state(self) -> Mode:
        return self._state

    @property
    def can_retry(self) -> bool:
        return self._recording_path.exists()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def try_start_recording(self) -> bool:
        with self._lock:
            if self._state != Mode.IDLE:
                return False
            try:
                self._capture.start(self._recording_path, on_amplitude=self._handle_amplitude)
            except DictationError as exc:
                logger.error("Failed to start recorder: %s", exc.message)
                self._emit_error(exc.message)
                return False
            self._session_id += 1
            self._transition(Mode.RECORDING)
            return True

    def try_stop_and_transcribe(self, suffix: str = SUFFIX_NONE) -> bool:
        with self._lock:
            if self._state != Mode.RECORDING:
                return False
            self._session_id += 1
            session_id = self._session_id
            self._transition(Mode.TRANSCRIBING)

        # stop() may sleep for the minimum-duration top-up; a cancel is
        # allowed to land while it does.
        try:
            audio_path = self._capture.stop()
        except DictationError as exc:
            with self._lock:
                if self._is_live(session_id):
                    self._fail(exc.message)
            return False

        with self._lock:
            if not self._is_live(session_id):
                logger.info("Session cancelled while stopping; keeping %s for retry", audio_path)
                return False
            logger.debug("Submitting %s with suffix %r", audio_path, suffix)
            self._transcriber.submit(audio_path, suffix, self._handle_result)
            return True

    def try_cancel(self) -> bool:
        with self._lock:
            if self._state == Mode.RECORDING:
                self._session_id += 1
                self._capture.discard()
                self._transition(Mode.IDLE)
                return True
            if self._state == Mode.TRANSCRIBING:
                self._session_id += 1
                self._transcriber.cancel()
                self._transition(Mode.IDLE)
                return True
            return False

    def retry(self) -> bool:
        with self._lock:
            if self._state != Mode.IDLE:
                logger.debug("Retry ignored (mode %s)", self._state.value)
                return False
            if not self.can_retry:
                logger.debug("Retry ignored: no recording on disk")
                return False
            logger.info("Retrying transcription with existing audio file")
            self._session_id += 1
            self._transition(Mode.TRANSCRIBING)
            self._transcriber.submit(self._recording_path, SUFFIX_NONE, self._handle_result)
            return True

    def mic_tap(self) -> bool:
        with self._lock:
            state = self._state
            if state == Mode.IDLE:
                return self.try_start_recording()
        if state == Mode.RECORDING:
            return self.try_stop_and_transcribe(SUFFIX_NONE)
        # A second tap while transcribing would otherwise cancel the
        # submission it just started.
        logger.debug("Already transcribing, ignoring mic tap")
        return False

    def press_enter(self) -> None:
        if self._state == Mode.RECORDING:
            self.try_stop_and_transcribe(SUFFIX_ENTER)
        else:
            self._text_sink.send_enter()

    def press_space(self) -> None:
        if self._state == Mode.RECORDING:
            self.try_stop_and_transcribe(SUFFIX_SPACE)
        else:
            self._text_sink.insert_space()

    def press_backspace(self) -> None:
        self._text_sink.delete_backward()

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def on_host_shown(self) -> None:
        with self._lock:
            if self._state == Mode.TRANSCRIBING:
                self.try_cancel()
            if not self._first_show:
                return
            self._first_show = False

        if self._read_auto_start():
            logger.info("Auto-starting recording")
            self.try_start_recording()
        else:
            logger.info("Auto-start recording disabled")

    def on_host_hidden(self) -> None:
        with self._lock:
            if self._state == Mode.TRANSCRIBING:
                self.try_cancel()

    def shutdown(self) -> None:
        with self._lock:
            if self._state == Mode.RECORDING:
                logger.info("Host destroyed while recording, discarding capture")
            self.try_cancel()
        self._transcriber.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _read_auto_start(self) -> bool:
        try:
            return self._config_store.get_settings().auto_start
        except Exception:
            # Recording starts anyway when the setting cannot be read.
            logger.exception("Error checking auto-start setting, defaulting to auto-start")
            return True

    def _handle_result(self, result: TranscriptionResult) -> None:
        with self._lock:
            if self._state != Mode.TRANSCRIBING or not self._transcriber.is_current(result.generation):
                logger.debug("Discarding stale transcription result #%d", result.generation)
                return

            if result.kind == ResultKind.FAILED.value:
                logger.error("Transcription failed (%s): %s", result.code, result.message)
                self._fail(result.message)
                return
            if result.text:
                paste = self._run_insert(result.text)
                if not paste.success:
                    logger.warning("%s: %s", NO_ACTIVE_TARGET, paste.reason)
                    self._emit_error(paste.reason)
            self._transition(Mode.IDLE)

    def _handle_amplitude(self, value: int) -> None:
        # Runs on the sampler thread; must not take the lock because
        # discard() joins that thread while holding it.
        if self._state == Mode.RECORDING and self._observer:
            self._observer.on_amplitude(value)

    def _run_insert(self, text: str) -> PasteResult:
        try:
            return self._text_sink.insert(text)
        except Exception as exc:
            logger.exception("Text insertion failed")
            return PasteResult(success=False, reason=str(exc), clipboard_restored=False)

    def _is_live(self, session_id: int) -> bool:
        return self._session_id == session_id and self._state == Mode.TRANSCRIBING

    def _fail(self, message: str) -> None:
        self._emit_error(message)
        self._transition(Mode.IDLE)

    def _emit_error(self, message: str) -> None:
        if self._observer:
            self._observer.on_error(message)

    def _transition(self, to_state: Mode) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        logger.debug("Mode change: %s -> %s", from_state.value, to_state.value)
        self._state = to_state
        if self._observer:
            self._observer.on_mode_changed(to_state)
