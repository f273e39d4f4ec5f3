"""Shared error codes, user-facing messages and the exception taxonomy."""

from __future__ import annotations

from typing import Optional

ACQUISITION_FAILED = "ACQUISITION_FAILED"
CAPTURE_TOO_SHORT = "CAPTURE_TOO_SHORT"
CONFIG_MISSING = "CONFIG_MISSING"
NETWORK_ERROR = "NETWORK_ERROR"
SERVICE_ERROR = "SERVICE_ERROR"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"

ERROR_MESSAGES = {
    ACQUISITION_FAILED: "Microphone could not be started.",
    CAPTURE_TOO_SHORT: "Recording too short or failed.",
    CONFIG_MISSING: "Transcription service is not configured.",
    NETWORK_ERROR: "Network failed, please retry.",
    SERVICE_ERROR: "Transcription service returned an error.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
}


class DictationError(Exception):
    """Base class for every recoverable failure in the dictation core."""

    code = SERVICE_ERROR

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)


class AcquisitionError(DictationError):
    code = ACQUISITION_FAILED


class CaptureTooShortError(DictationError):
    code = CAPTURE_TOO_SHORT


class ConfigurationError(DictationError):
    code = CONFIG_MISSING


class TransportError(DictationError):
    code = NETWORK_ERROR


class ServiceError(DictationError):
    code = SERVICE_ERROR

    def __init__(self, message: Optional[str] = None, status_code: int = 0) -> None:
        self.status_code = status_code
        super().__init__(message)
