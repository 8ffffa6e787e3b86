# core/client.py
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Dict

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from .config import ClientSettings
from .errors import AppError, ErrorType
from .logger import get_logger
from .models import ExtractionRecord
from .urls import is_valid_url, sanitize

logger = get_logger(__name__)

PREVIEW_ENDPOINT = "/api/preview"


class PreviewRequestError(Exception):
    """One preview attempt failed in a way worth retrying."""


class PreviewTimeout(PreviewRequestError):
    """The attempt ran out of time, on the client timer or on the server."""


class ClientTimeout(PreviewTimeout):
    pass


class PreviewClient:
    """
    Calls the extraction service from the application side.

    Each attempt races an independent client timer; a timer expiry counts
    as an ordinary failed attempt. Between attempts the client waits
    base_delay * attempt_number (1s, 2s, ...).
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or ClientSettings()
        self.session = session or requests.Session()
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}{PREVIEW_ENDPOINT}"

    def _post(self, url: str) -> Dict[str, Any]:
        resp = self.session.post(
            self.endpoint,
            json={"url": url},
            timeout=self.settings.timeout,
        )
        if resp.status_code == 400:
            message = _error_message(resp) or "Invalid URL provided"
            raise AppError(ErrorType.VALIDATION, message, retryable=False)
        if resp.status_code == 408:
            raise PreviewTimeout(
                f"API request timed out: {_error_message(resp) or resp.reason}"
            )
        if resp.status_code >= 400:
            raise PreviewRequestError(
                f"API request failed: {resp.status_code} {_error_message(resp) or resp.reason}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise PreviewRequestError("API returned a non-JSON response") from exc
        if not isinstance(payload, dict) or not payload.get("success") or not isinstance(
            payload.get("data"), dict
        ):
            raise PreviewRequestError("API returned unsuccessful response")
        return payload

    def _attempt(self, url: str) -> Dict[str, Any]:
        """Run one request against a client-side timer that fires independently."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="preview-client")
        try:
            future = executor.submit(self._post, url)
            try:
                return future.result(timeout=self.settings.timeout)
            except FutureTimeout as exc:
                if future.done():
                    raise
                future.cancel()
                raise ClientTimeout(
                    f"Client timeout after {self.settings.timeout:g} seconds"
                ) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _log_retry(self, retry_state) -> None:
        exc = retry_state.outcome.exception()
        logger.warning(
            "Preview attempt %d/%d failed: %s. Retrying in %.1fs.",
            retry_state.attempt_number,
            self.settings.max_attempts,
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    def fetch_preview(self, url: str) -> ExtractionRecord:
        if not isinstance(url, str) or not url.strip():
            raise AppError(ErrorType.VALIDATION, "Invalid URL provided", retryable=False)
        sanitized = sanitize(url)
        if not is_valid_url(sanitized):
            raise AppError(ErrorType.VALIDATION, "Invalid URL provided", retryable=False)

        attempts = self.settings.max_attempts
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(
                start=self.settings.base_delay, increment=self.settings.base_delay
            ),
            retry=retry_if_exception_type(
                (requests.RequestException, PreviewRequestError, TimeoutError)
            ),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        logger.debug("Requesting preview for %s", sanitized)
        try:
            payload = retrying(self._attempt, sanitized)
        except AppError:
            raise
        except (requests.RequestException, PreviewRequestError, TimeoutError) as exc:
            logger.error("Preview for %s failed after %d attempts: %s", sanitized, attempts, exc)
            if isinstance(exc, (PreviewTimeout, requests.Timeout, TimeoutError)):
                error_type = ErrorType.TIMEOUT
            else:
                error_type = ErrorType.NETWORK
            raise AppError(
                error_type,
                f"Failed to fetch preview after {attempts} attempts: {exc}",
                retryable=True,
            ) from exc

        record = ExtractionRecord.from_dict(payload["data"])
        logger.info("Preview extracted for %s: %r", sanitized, record.title)
        return record


def _error_message(resp) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None
