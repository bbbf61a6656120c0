"""Error taxonomy, transport error classification, and retry policy."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorType(str, Enum):
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"
    SIZE_LIMIT_EXCEEDED = "SIZE_LIMIT_EXCEEDED"
    ENCRYPTED_DOCUMENT = "ENCRYPTED_DOCUMENT"
    SCANNED_DOCUMENT = "SCANNED_DOCUMENT"
    PARSE_ERROR = "PARSE_ERROR"
    NOT_EXPORTABLE = "NOT_EXPORTABLE"
    NOT_STREAMABLE = "NOT_STREAMABLE"
    INVALID_RANGE = "INVALID_RANGE"
    UNKNOWN = "UNKNOWN"


RETRYABLE = frozenset({ErrorType.RATE_LIMIT, ErrorType.NETWORK_ERROR})

SUGGESTIONS = {
    ErrorType.AUTH_ERROR: "Re-authenticate and refresh the access token.",
    ErrorType.PERMISSION_ERROR: "Check that the file or folder is shared with this account.",
    ErrorType.NOT_FOUND: "Verify the file or folder ID is correct.",
    ErrorType.RATE_LIMIT: "Wait a few minutes before trying again.",
    ErrorType.NETWORK_ERROR: "Check the network connection and try again.",
    ErrorType.QUOTA_EXCEEDED: "Free up storage space or request a higher quota.",
    ErrorType.OUT_OF_SCOPE: "Only files inside the configured root folder can be read.",
    ErrorType.SIZE_LIMIT_EXCEEDED: (
        "Reduce the file size, raise DOCSCOPE_MAX_DOCUMENT_SIZE_MB, "
        "or use read_large_file to read it in chunks."
    ),
    ErrorType.ENCRYPTED_DOCUMENT: "Remove the document password and try again.",
    ErrorType.SCANNED_DOCUMENT: "Run OCR on the document to produce a text layer.",
    ErrorType.PARSE_ERROR: "The file may be corrupted; re-download or re-save it.",
    ErrorType.NOT_EXPORTABLE: "This native document type has no text export.",
    ErrorType.NOT_STREAMABLE: "Use read_file for native documents.",
    ErrorType.INVALID_RANGE: "Choose a start byte inside the file.",
    ErrorType.UNKNOWN: "",
}


class ExtractionError(Exception):
    """A classified failure surfaced to callers instead of a partial result."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE

    @property
    def suggestion(self) -> str:
        return SUGGESTIONS.get(self.error_type, "")

    def describe(self) -> str:
        """Message plus remediation hint, for user-facing output."""
        text = f"[{self.error_type.value}] {self.message}"
        if self.suggestion:
            text += f"\n\nSuggestion: {self.suggestion}"
        return text

    def __repr__(self) -> str:
        return f"ExtractionError({self.error_type.value}, {self.message!r})"


def _error_details(response: httpx.Response) -> tuple[str, set[str]]:
    """Pull message and reason codes out of a store error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, set()

    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return response.reason_phrase, set()

    reasons = {e.get("reason", "") for e in error.get("errors", []) if isinstance(e, dict)}
    return error.get("message") or response.reason_phrase, reasons


def classify_http_error(exc: Exception) -> ExtractionError:
    """Map an httpx failure onto the error taxonomy."""
    if isinstance(exc, ExtractionError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        message, reasons = _error_details(exc.response)

        if status == 401:
            return ExtractionError(ErrorType.AUTH_ERROR, f"Authentication failed: {message}", status)
        if status == 403:
            if reasons & {"rateLimitExceeded", "userRateLimitExceeded"}:
                return ExtractionError(ErrorType.RATE_LIMIT, f"Rate limit exceeded: {message}", status)
            if reasons & {"storageQuotaExceeded", "quotaExceeded"}:
                return ExtractionError(ErrorType.QUOTA_EXCEEDED, f"Quota exceeded: {message}", status)
            return ExtractionError(ErrorType.PERMISSION_ERROR, f"Permission denied: {message}", status)
        if status == 404:
            return ExtractionError(ErrorType.NOT_FOUND, f"Not found: {message}", status)
        if status == 416:
            return ExtractionError(ErrorType.INVALID_RANGE, f"Range not satisfiable: {message}", status)
        if status == 429:
            return ExtractionError(ErrorType.RATE_LIMIT, f"Rate limit exceeded: {message}", status)
        if status >= 500:
            return ExtractionError(ErrorType.NETWORK_ERROR, f"Store unavailable ({status}): {message}", status)
        return ExtractionError(ErrorType.UNKNOWN, f"Unexpected response ({status}): {message}", status)

    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return ExtractionError(ErrorType.NETWORK_ERROR, f"Network error: {exc!r}")

    return ExtractionError(ErrorType.UNKNOWN, str(exc) or repr(exc))


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ExtractionError) and exc.retryable


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    wait = state.next_action.sleep if state.next_action else 0.0
    logger.warning(
        "Attempt %d failed: %s. Retrying in %.1fs",
        state.attempt_number, getattr(exc, "message", exc), wait,
    )


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 1.0,
) -> T:
    """Call ``fn`` retrying retryable failures with linear backoff.

    Sleeps ``delay * attempt`` between tries. Non-retryable errors are
    raised on first occurrence; the last error is re-raised when attempts
    run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_incrementing(start=delay, increment=delay),
        retry=retry_if_exception(_is_retryable),
        before_sleep=_log_retry,
        sleep=_sleep,
        reraise=True,
    )
    return await retrying(fn)
