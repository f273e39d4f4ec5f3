"""Single-flight transcription requests against an HTTP Whisper endpoint.

Each ``submit`` gets a new generation number and supersedes whatever was in
flight. Cancellation only advances the generation: the HTTP exchange keeps
running on its worker thread until it finishes or times out, and its result
is dropped because its generation is no longer current. At most one result
is delivered per generation.

Two request styles are supported:

* OpenAI style: bearer auth, ``file``/``model``/``response_format`` parts
  plus optional ``language`` and ``prompt``.
* whisper-asr-webservice style: a single ``audio_file`` part and query
  parameters, no auth.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

import httpx

from errors import (
    CaptureTooShortError,
    ConfigurationError,
    DictationError,
    ServiceError,
    TransportError,
)
from interfaces import ConfigStore
from models import DictationSettings, ResultKind, TranscriptionRequest, TranscriptionResult
from recorder import AUDIO_MEDIA_TYPE

logger = logging.getLogger(__name__)

UPLOAD_FILENAME = "audio.wav"

CompletionCallback = Callable[[TranscriptionResult], None]
Dispatch = Callable[[Callable[[], None]], None]


def _run_inline(fn: Callable[[], None]) -> None:
    fn()


def build_request_parts(settings: DictationSettings) -> tuple[str, dict, dict, dict]:
    """Return ``(file_field, params, headers, data)`` for the configured style."""
    if settings.request_style_openai:
        data = {"model": settings.model, "response_format": "text"}
        if settings.language_code and settings.language_code != "auto":
            data["language"] = settings.language_code
        if settings.prompt:
            data["prompt"] = settings.prompt
        headers = {"Authorization": f"Bearer {settings.api_key}"}
        return "file", {}, headers, data

    params = {
        "encode": "true",
        "task": "transcribe",
        "language": settings.language_code,
        "word_timestamps": "false",
        "output": "txt",
    }
    return "audio_file", params, {}, {}


class TranscriptionJob:
    def __init__(
        self,
        config_store: ConfigStore,
        client: Optional[httpx.Client] = None,
        dispatch: Optional[Dispatch] = None,
        media_type: str = AUDIO_MEDIA_TYPE,
        upload_name: str = UPLOAD_FILENAME,
    ) -> None:
        self._config_store = config_store
        self._owns_client = client is None
        self._client = client or httpx.Client()
        self._dispatch = dispatch or _run_inline
        self._media_type = media_type
        self._upload_name = upload_name

        self._lock = threading.Lock()
        self._generation = 0
        self._delivered = 0
        self._in_flight: Optional[TranscriptionRequest] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def submit(
        self,
        audio_path: Path,
        suffix: str,
        on_complete: CompletionCallback,
    ) -> TranscriptionRequest:
        with self._lock:
            if self._in_flight is not None:
                logger.info("Superseding transcription #%d", self._in_flight.generation)
            self._generation += 1
            request = TranscriptionRequest(
                audio_path=Path(audio_path),
                suffix=suffix,
                generation=self._generation,
            )
            self._in_flight = request

        logger.info("Starting transcription #%d of %s", request.generation, request.audio_path)
        try:
            settings = self._config_store.get_settings()
            self._validate(request, settings)
        except DictationError as exc:
            logger.error("Transcription #%d rejected: %s", request.generation, exc.message)
            self._finish(
                request,
                TranscriptionResult.failed(request.generation, exc.code, exc.message),
                on_complete,
            )
            return request

        thread = threading.Thread(
            target=self._worker,
            args=(request, settings, on_complete),
            name=f"transcription-{request.generation}",
            daemon=True,
        )
        with self._lock:
            self._thread = thread
        thread.start()
        return request

    def cancel(self) -> None:
        with self._lock:
            if self._in_flight is not None:
                logger.info("Transcription #%d cancelled", self._in_flight.generation)
            self._generation += 1
            self._in_flight = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the most recent worker; True when it has finished."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def close(self) -> None:
        self.cancel()
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _validate(self, request: TranscriptionRequest, settings: DictationSettings) -> None:
        if not settings.endpoint:
            raise ConfigurationError("Endpoint is not set. Please configure it in settings.")
        if settings.request_style_openai and not settings.api_key:
            raise ConfigurationError("API key is not set. Please configure it in settings.")
        if not request.audio_path.exists():
            raise CaptureTooShortError(f"Audio file not found: {request.audio_path}")
        if request.audio_path.stat().st_size == 0:
            raise CaptureTooShortError("Audio file is empty.")

    def _worker(
        self,
        request: TranscriptionRequest,
        settings: DictationSettings,
        on_complete: CompletionCallback,
    ) -> None:
        if not self.is_current(request.generation):
            logger.debug("Transcription #%d abandoned before sending", request.generation)
            return

        timeout = TransportError("Request timed out.")
        watchdog = threading.Timer(
            settings.call_timeout_s,
            self._finish,
            args=(
                request,
                TranscriptionResult.failed(request.generation, timeout.code, timeout.message),
                on_complete,
            ),
        )
        watchdog.daemon = True
        watchdog.start()
        result = self._exchange(request, settings)
        watchdog.cancel()
        self._finish(request, result, on_complete)

    def _exchange(
        self,
        request: TranscriptionRequest,
        settings: DictationSettings,
    ) -> TranscriptionResult:
        try:
            text = self._post(request, settings)
        except DictationError as exc:
            logger.error("Transcription #%d failed: %s", request.generation, exc.message)
            return TranscriptionResult.failed(request.generation, exc.code, exc.message)
        except Exception as exc:
            logger.exception("Transcription #%d failed unexpectedly", request.generation)
            failure = TransportError(f"Request failed: {exc}")
            return TranscriptionResult.failed(request.generation, failure.code, failure.message)
        logger.debug("Transcription #%d returned %d characters", request.generation, len(text))
        return TranscriptionResult.text_result(request.generation, text)

    def _post(self, request: TranscriptionRequest, settings: DictationSettings) -> str:
        file_field, params, headers, data = build_request_parts(settings)
        timeout = httpx.Timeout(
            settings.connect_timeout_s,
            connect=settings.connect_timeout_s,
            read=settings.read_timeout_s,
            write=settings.write_timeout_s,
        )
        logger.debug("POST %s (%s style)", settings.endpoint, file_field)
        try:
            with request.audio_path.open("rb") as audio:
                response = self._client.post(
                    settings.endpoint,
                    params=params,
                    headers=headers,
                    data=data,
                    files={file_field: (self._upload_name, audio, self._media_type)},
                    timeout=timeout,
                )
        except httpx.TimeoutException as exc:
            raise TransportError("Request timed out.") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"Could not read audio file: {exc}") from exc
        except (httpx.InvalidURL, ValueError) as exc:
            # Unparseable endpoint, or a header value httpx cannot encode.
            raise ConfigurationError(f"Invalid endpoint or API key: {exc}") from exc

        logger.debug("Response code: %d", response.status_code)
        if not response.is_success:
            body = response.text.replace("\n", " ").strip()
            raise ServiceError(body or f"HTTP {response.status_code}", status_code=response.status_code)
        return response.text.strip() + request.suffix

    def _finish(
        self,
        request: TranscriptionRequest,
        result: TranscriptionResult,
        on_complete: CompletionCallback,
    ) -> None:
        with self._lock:
            if request.generation != self._generation:
                logger.info("Dropping result of superseded transcription #%d", request.generation)
                return
            if self._delivered == request.generation:
                return
            self._delivered = request.generation
            self._in_flight = None
        self._dispatch(lambda: self._deliver(request, result, on_complete))

    def _deliver(
        self,
        request: TranscriptionRequest,
        result: TranscriptionResult,
        on_complete: CompletionCallback,
    ) -> None:
        # Runs wherever dispatch puts it; a cancel may have landed since
        # _finish, in which case the audio stays for retry.
        if not self.is_current(request.generation):
            logger.info("Dropping result of cancelled transcription #%d", request.generation)
            return
        on_complete(result)
        if result.kind == ResultKind.TEXT.value:
            with self._lock:
                if request.generation == self._generation:
                    _delete_artifact(request.audio_path)


def _delete_artifact(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
        logger.debug("Audio file deleted after transcription: %s", path)
    except OSError:
        logger.warning("Could not delete %s", path, exc_info=True)
