"""Structured error logging for settled orchestrations.

- Records carry error_code, stack_trace, context and the request id
- Sensitive header/context keys and URL query values are redacted
- Emitted as ``extra={"structured_error": {...}}`` for log aggregation
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fetchguard.shared.request_context import get_request_id

_REDACTED = "[REDACTED]"

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "token",
        "access_token",
        "secret",
        "api_key",
        "apikey",
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "credential",
    }
)


@dataclass(frozen=True)
class StructuredError:
    """Structured representation of a terminal failure."""

    error_code: str
    message: str
    stack_trace: str
    context: dict[str, Any] = field(default_factory=dict)
    request_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["context"] = redact_sensitive(d["context"])
        return d


def _is_sensitive(key: str) -> bool:
    return key.lower() in _SENSITIVE_KEYS


def redact_url(url: str) -> str:
    """Blank out credentials and sensitive query values of ``url``."""
    parts = urlsplit(url)
    if not parts.query and "@" not in parts.netloc:
        return url
    netloc = parts.netloc.rsplit("@", 1)[-1]
    pairs = [
        (key, _REDACTED if _is_sensitive(key) else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit((parts.scheme, netloc, parts.path, urlencode(pairs), parts.fragment))


def redact_sensitive(data: Mapping[str, Any]) -> dict[str, Any]:
    """Redact values of sensitive keys, recursing into nested mappings."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if _is_sensitive(str(key)):
            result[key] = _REDACTED
        elif isinstance(value, Mapping):
            result[key] = redact_sensitive(value)
        elif key == "url" and isinstance(value, str):
            result[key] = redact_url(value)
        else:
            result[key] = value
    return result


def create_structured_error(
    exc: BaseException,
    *,
    error_code: str = "",
    context: dict[str, Any] | None = None,
) -> StructuredError:
    """Create a StructuredError from an exception.

    FetchGuardError subclasses contribute their ``.code`` unless
    ``error_code`` overrides it.
    """
    code = error_code or getattr(exc, "code", type(exc).__name__)
    stack = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return StructuredError(
        error_code=code,
        message=str(exc),
        stack_trace="".join(stack),
        context=context or {},
        request_id=get_request_id(),
    )


def log_structured_error(
    logger: logging.Logger,
    exc: BaseException,
    *,
    error_code: str = "",
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> StructuredError:
    """Log an exception as a structured error and return it."""
    structured = create_structured_error(exc, error_code=error_code, context=context)
    logger.log(
        level,
        "request failed: %s",
        structured.error_code,
        extra={"structured_error": structured.to_dict()},
    )
    return structured
