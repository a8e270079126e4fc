"""Error hierarchy for fetchguard.

All errors raised to callers inherit from FetchGuardError and carry a
stable ``code``. Only ConfigurationError is raised synchronously; every
other error is the settled result of an orchestration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fetchguard.shared.types import AbortSource

if TYPE_CHECKING:
    import httpx


class FetchGuardError(Exception):
    """Base error for all fetchguard exceptions."""

    def __init__(self, message: str, code: str = "FETCHGUARD_ERROR") -> None:
        self.code = code
        super().__init__(message)


class ConfigurationError(FetchGuardError):
    """Options are invalid or conflict with each other.

    Reported before any attempt starts; never retried.
    """

    def __init__(self, message: str, option: str = "") -> None:
        self.option = option
        super().__init__(message, code="CONFIGURATION")


# -- Cancellation --


class AbortError(FetchGuardError):
    """An effective signal fired while an attempt was in flight."""

    def __init__(
        self,
        message: str = "The operation was aborted",
        *,
        source: AbortSource | None = None,
        reason: Any = None,
        code: str = "ABORTED",
    ) -> None:
        self.source = source
        self.reason = reason
        super().__init__(message, code=code)


class UserCancelledError(AbortError):
    """The caller aborted. Terminal regardless of retry budget."""

    def __init__(self, source: AbortSource | None = None, reason: Any = None) -> None:
        super().__init__(
            "Request cancelled by caller",
            source=source,
            reason=reason,
            code="USER_CANCELLED",
        )


class AttemptTimeoutError(AbortError):
    """The per-attempt timeout elapsed before the response arrived."""

    def __init__(self, timeout_ms: float) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Attempt timed out after {timeout_ms:g}ms",
            source=AbortSource.TIMEOUT,
            code="ATTEMPT_TIMEOUT",
        )


# -- Response / transport --


class ValidationFailedError(FetchGuardError):
    """A response was received but its status failed validation."""

    def __init__(self, status: int, response: httpx.Response, body: Any = None) -> None:
        self.status = status
        self.response = response
        self.body = body
        if 400 <= status < 500:
            code = "ERR_BAD_REQUEST"
        elif 500 <= status < 600:
            code = "ERR_BAD_RESPONSE"
        else:
            code = "VALIDATION_FAILED"
        super().__init__(f"Request failed with status code {status}", code=code)


class TransportError(FetchGuardError):
    """The transport call failed. Raised with the last cause chained."""

    def __init__(self, cause: BaseException, message: str = "", code: str = "TRANSPORT_FAILED") -> None:
        self.cause = cause
        super().__init__(message or f"Transport failed: {cause!r}", code=code)
        self.__cause__ = cause


class ResponseDecodeError(TransportError):
    """The response body could not be decoded. The body cannot be re-read."""

    def __init__(self, cause: BaseException, response_type: str) -> None:
        self.response_type = response_type
        super().__init__(
            cause,
            message=f"Failed to decode {response_type} response body: {cause}",
            code="DECODE_FAILED",
        )


__all__ = [
    "AbortError",
    "AttemptTimeoutError",
    "ConfigurationError",
    "FetchGuardError",
    "ResponseDecodeError",
    "TransportError",
    "UserCancelledError",
    "ValidationFailedError",
]
