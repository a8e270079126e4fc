"""Failure classification for a single attempt.

Rules, in order:
1. Abort from the caller signal or the published handle -> UserCancelled (terminal)
2. Abort from the per-attempt timeout                   -> AttemptTimedOut (retryable)
3. Response failed status validation                    -> ValidationFailed (terminal)
4. Anything else                                        -> TransportFailed (retryable)

Validation failures are never retried, 5xx included: a deterministic
status is assumed not to change on retry.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

import httpx

from fetchguard.codec.body import decode_body
from fetchguard.shared.errors import AbortError, ConfigurationError, ValidationFailedError
from fetchguard.shared.types import AbortSource, BodyKind

logger = logging.getLogger(__name__)

StatusRule = int | Callable[[int], bool] | Literal["ok"] | None


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    USER_CANCELLED = "user_cancelled"
    ATTEMPT_TIMED_OUT = "attempt_timed_out"
    VALIDATION_FAILED = "validation_failed"
    TRANSPORT_FAILED = "transport_failed"


@dataclass(frozen=True)
class Success:
    response: httpx.Response

    kind: ClassVar[OutcomeKind] = OutcomeKind.SUCCESS
    retryable: ClassVar[bool] = False


@dataclass(frozen=True)
class UserCancelled:
    error: AbortError
    source: AbortSource | None

    kind: ClassVar[OutcomeKind] = OutcomeKind.USER_CANCELLED
    retryable: ClassVar[bool] = False


@dataclass(frozen=True)
class AttemptTimedOut:
    error: AbortError

    kind: ClassVar[OutcomeKind] = OutcomeKind.ATTEMPT_TIMED_OUT
    retryable: ClassVar[bool] = True


@dataclass(frozen=True)
class ValidationFailed:
    error: ValidationFailedError
    response: httpx.Response
    body: Any = None

    kind: ClassVar[OutcomeKind] = OutcomeKind.VALIDATION_FAILED
    retryable: ClassVar[bool] = False


@dataclass(frozen=True)
class TransportFailed:
    cause: BaseException

    kind: ClassVar[OutcomeKind] = OutcomeKind.TRANSPORT_FAILED
    retryable: ClassVar[bool] = True


AttemptOutcome = Success | UserCancelled | AttemptTimedOut | ValidationFailed | TransportFailed


def parse_status_rule(value: object) -> StatusRule:
    """Validate the ``validate_status`` option."""
    if value is None or value == "ok":
        return value  # type: ignore[return-value]
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if callable(value):
        return value  # type: ignore[return-value]
    msg = f"validate_status not supported ({value!r})"
    raise ConfigurationError(msg, option="validate_status")


def check_status(response: httpx.Response, rule: StatusRule) -> None:
    """Raise ValidationFailedError when ``response`` fails ``rule``.

    A predicate that raises propagates its own exception; the caller
    classifies it like any other failure.
    """
    if rule is None:
        return
    status = response.status_code
    if rule == "ok":
        passed = 200 <= status < 300
    elif isinstance(rule, int):
        passed = status == rule
    else:
        passed = bool(rule(status))
    if not passed:
        raise ValidationFailedError(status, response)


def diagnostic_body(response: httpx.Response, response_type: BodyKind | None) -> Any:
    """Best-effort decode of a rejected response; None when it can't be read."""
    if response_type not in (BodyKind.JSON, BodyKind.TEXT):
        return None
    try:
        return decode_body(response, response_type)
    except (ValueError, httpx.StreamError) as exc:
        logger.debug("Could not decode rejected response body: %s", exc)
        return None


def classify(
    thrown: BaseException,
    timeout_fired: bool,
    response_type: BodyKind | None = None,
) -> AttemptOutcome:
    """Map a failed attempt to its outcome."""
    if isinstance(thrown, AbortError):
        if thrown.source is AbortSource.TIMEOUT or (thrown.source is None and timeout_fired):
            return AttemptTimedOut(error=thrown)
        if thrown.source is not None:
            return UserCancelled(error=thrown, source=thrown.source)
        # Abort not tied to any source we own: treat as a transport failure.
        return TransportFailed(cause=thrown)

    if isinstance(thrown, ValidationFailedError):
        body = diagnostic_body(thrown.response, response_type)
        thrown.body = body
        return ValidationFailed(error=thrown, response=thrown.response, body=body)

    return TransportFailed(cause=thrown)
