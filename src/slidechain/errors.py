"""Error taxonomy for model calls and the classifier that feeds it."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import openai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import BlockedPromptException, StopCandidateException


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    CONTENT_FILTERED = "content_filtered"
    VALIDATION = "validation"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self not in (ErrorKind.CONTENT_FILTERED, ErrorKind.VALIDATION)

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.TIMEOUT: 504,
    ErrorKind.NETWORK: 503,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.CONTENT_FILTERED: 422,
    ErrorKind.VALIDATION: 502,
    ErrorKind.UNKNOWN: 500,
}


class ClassifiedError(Exception):
    """A failure tagged with its kind, the stage it happened in and the attempt.

    The engine passes these around as values; only ``SlidePipeline.generate``
    raises them.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        stage: Optional[str] = None,
        attempt: int = 0,
        cause: Optional[BaseException] = None,
        retry_after: Optional[float] = None,
        details: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.stage = stage
        self.attempt = attempt
        self.cause = cause
        self.retry_after = retry_after
        self.details = list(details or [])

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def with_context(self, stage: Optional[str], attempt: int) -> "ClassifiedError":
        return ClassifiedError(
            self.kind,
            self.message,
            stage=stage,
            attempt=attempt,
            cause=self.cause,
            retry_after=self.retry_after,
            details=self.details,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": str(self),
            "stage": self.stage,
            "attempt": self.attempt,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"ClassifiedError(kind={self.kind.value!r}, stage={self.stage!r}, attempt={self.attempt}, message={self.message!r})"


class ResponseFormatError(ValueError):
    """The model answered with something that is not a JSON object."""


class SpecValidationError(ValueError):
    """The parsed response failed schema validation even after recovery."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        preview = "; ".join(self.errors[:3])
        more = f" (+{len(self.errors) - 3} more)" if len(self.errors) > 3 else ""
        super().__init__(f"schema validation failed: {preview}{more}")


class ContentFilteredResponse(RuntimeError):
    """The provider refused or truncated the answer on content-policy grounds."""


_CONTENT_FILTER_CODES = {"content_filter", "content_policy_violation", "content_filtered"}


def _retry_after(response: Optional[httpx.Response]) -> Optional[float]:
    if response is None:
        return None
    raw = response.headers.get("retry-after-ms")
    if raw:
        try:
            return float(raw) / 1000.0
        except ValueError:
            pass
    raw = response.headers.get("retry-after")
    if raw:
        try:
            return max(float(raw), 0.0)
        except ValueError:
            return None
    return None


def _kind_for_status(status: int) -> ErrorKind:
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status in (408, 504):
        return ErrorKind.TIMEOUT
    if status >= 500:
        return ErrorKind.NETWORK
    if 400 <= status < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def _classify_openai(exc: openai.OpenAIError) -> Optional[ClassifiedError]:
    if isinstance(exc, openai.APITimeoutError):
        return ClassifiedError(ErrorKind.TIMEOUT, "model request timed out", cause=exc)
    if isinstance(exc, openai.APIConnectionError):
        return ClassifiedError(ErrorKind.NETWORK, f"connection to model provider failed: {exc}", cause=exc)
    if isinstance(exc, openai.APIStatusError):
        code = getattr(exc, "code", None)
        if code in _CONTENT_FILTER_CODES:
            return ClassifiedError(ErrorKind.CONTENT_FILTERED, f"request rejected by content policy: {exc.message}", cause=exc)
        kind = _kind_for_status(exc.status_code)
        retry_after = _retry_after(exc.response) if kind is ErrorKind.RATE_LIMIT else None
        return ClassifiedError(kind, f"provider returned {exc.status_code}: {exc.message}", cause=exc, retry_after=retry_after)
    return None


def _classify_google(exc: google_exceptions.GoogleAPICallError) -> ClassifiedError:
    if isinstance(exc, google_exceptions.DeadlineExceeded):
        return ClassifiedError(ErrorKind.TIMEOUT, f"model request timed out: {exc.message}", cause=exc)
    if isinstance(exc, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return ClassifiedError(ErrorKind.RATE_LIMIT, f"quota exhausted: {exc.message}", cause=exc)
    status = exc.code if isinstance(exc.code, int) else None
    if status is None:
        return ClassifiedError(ErrorKind.UNKNOWN, f"provider error: {exc.message}", cause=exc)
    return ClassifiedError(_kind_for_status(status), f"provider returned {status}: {exc.message}", cause=exc)


def _classify(exc: BaseException, timeout_s: Optional[float]) -> ClassifiedError:
    if isinstance(exc, ClassifiedError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        if timeout_s is not None:
            return ClassifiedError(ErrorKind.TIMEOUT, f"model call exceeded {timeout_s:g}s", cause=exc)
        return ClassifiedError(ErrorKind.TIMEOUT, "model call timed out", cause=exc)
    if isinstance(exc, (ContentFilteredResponse, BlockedPromptException, StopCandidateException)):
        return ClassifiedError(ErrorKind.CONTENT_FILTERED, f"response blocked by content policy: {exc}", cause=exc)
    if isinstance(exc, SpecValidationError):
        return ClassifiedError(ErrorKind.VALIDATION, str(exc), cause=exc, details=exc.errors)
    if isinstance(exc, ResponseFormatError):
        return ClassifiedError(ErrorKind.VALIDATION, str(exc), cause=exc)
    if isinstance(exc, openai.OpenAIError):
        classified = _classify_openai(exc)
        if classified is not None:
            return classified
    if isinstance(exc, google_exceptions.GoogleAPICallError):
        return _classify_google(exc)
    if isinstance(exc, httpx.TimeoutException):
        return ClassifiedError(ErrorKind.TIMEOUT, f"transport timed out: {exc}", cause=exc)
    if isinstance(exc, httpx.TransportError):
        return ClassifiedError(ErrorKind.NETWORK, f"transport failure: {exc}", cause=exc)
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        kind = _kind_for_status(status)
        retry_after = _retry_after(exc.response) if kind is ErrorKind.RATE_LIMIT else None
        return ClassifiedError(kind, f"provider returned {status}", cause=exc, retry_after=retry_after)
    if isinstance(exc, (ConnectionError, TimeoutError)):
        kind = ErrorKind.TIMEOUT if isinstance(exc, TimeoutError) else ErrorKind.NETWORK
        return ClassifiedError(kind, f"{type(exc).__name__}: {exc}", cause=exc)
    return ClassifiedError(ErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}", cause=exc)


def classify(
    exc: BaseException,
    *,
    stage: Optional[str] = None,
    attempt: int = 0,
    timeout_s: Optional[float] = None,
) -> ClassifiedError:
    """Map any failure from a stage attempt to exactly one ErrorKind.

    Already classified errors are re-tagged with ``stage`` and ``attempt``.
    """

    return _classify(exc, timeout_s).with_context(stage, attempt)


__all__ = [
    "ClassifiedError",
    "ContentFilteredResponse",
    "ErrorKind",
    "ResponseFormatError",
    "SpecValidationError",
    "classify",
]
