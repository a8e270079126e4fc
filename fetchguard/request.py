"""Option parsing and the immutable RequestSpec.

Everything here runs once, before the first attempt. Conflicting or
unsupported options raise ConfigurationError synchronously.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from fetchguard.cancellation.signal import AbortController, AbortSignal, check_signal_pairing
from fetchguard.classifier import StatusRule, parse_status_rule
from fetchguard.codec.body import (
    default_accept,
    encode_request_body,
    parse_request_type,
    parse_response_type,
)
from fetchguard.codec.query import build_url
from fetchguard.resilience.backoff import RetryConfig, parse_retry
from fetchguard.resilience.timeout import parse_timeout
from fetchguard.shared.errors import ConfigurationError

if TYPE_CHECKING:
    from fetchguard.shared.types import BodyKind

KNOWN_OPTIONS = frozenset(
    {
        "method",
        "headers",
        "body",
        "query",
        "retry",
        "timeout",
        "validate_status",
        "request_type",
        "response_type",
        "signal",
        "controller",
    }
)


@dataclass(frozen=True)
class RequestSpec:
    """What every attempt sends. Never mutated during retries."""

    url: str
    method: str = "GET"
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    request_type: BodyKind | None = None
    response_type: BodyKind | None = None

    def header_map(self) -> httpx.Headers:
        """Fresh case-insensitive copy of the headers."""
        return httpx.Headers(list(self.headers))


@dataclass(frozen=True)
class FetchOptions:
    """Parsed orchestration options."""

    request: RequestSpec
    retry: RetryConfig | None = None
    timeout_ms: float | None = None
    status_rule: StatusRule = None
    signal: AbortSignal | None = None


def _parse_method(value: object) -> str:
    if value is None:
        return "GET"
    if not isinstance(value, str) or not value.strip():
        msg = f"method must be a non-empty string, got {value!r}"
        raise ConfigurationError(msg, option="method")
    return value.strip().upper()


def _parse_headers(value: object) -> httpx.Headers:
    if value is None:
        return httpx.Headers()
    if isinstance(value, httpx.Headers | Mapping | list | tuple):
        try:
            return httpx.Headers(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid headers: {exc}", option="headers") from exc
    msg = f"headers must be a mapping, got {type(value).__name__}"
    raise ConfigurationError(msg, option="headers")


def _parse_signal(controller: object, signal: object) -> AbortSignal | None:
    if controller is not None and not isinstance(controller, AbortController):
        msg = f"controller must be an AbortController, got {type(controller).__name__}"
        raise ConfigurationError(msg, option="controller")
    if signal is not None and not isinstance(signal, AbortSignal):
        msg = f"signal must be an AbortSignal, got {type(signal).__name__}"
        raise ConfigurationError(msg, option="signal")
    return check_signal_pairing(controller, signal)


def parse_options(url: str, options: Mapping[str, Any]) -> FetchOptions:
    """Validate ``options`` and build the RequestSpec for ``url``."""
    if not isinstance(url, str):
        msg = f"url must be a string, got {type(url).__name__}"
        raise ConfigurationError(msg, option="url")
    unknown = sorted(set(options) - KNOWN_OPTIONS)
    if unknown:
        msg = f"Unknown option(s): {', '.join(unknown)}"
        raise ConfigurationError(msg, option=unknown[0])

    request_type = parse_request_type(options.get("request_type"))
    response_type = parse_response_type(options.get("response_type"))

    headers = _parse_headers(options.get("headers"))
    body = encode_request_body(headers, options.get("body"), request_type)
    default_accept(headers, response_type)

    request = RequestSpec(
        url=build_url(url, options.get("query")),
        method=_parse_method(options.get("method")),
        headers=tuple(headers.multi_items()),
        body=body,
        request_type=request_type,
        response_type=response_type,
    )
    return FetchOptions(
        request=request,
        retry=parse_retry(options.get("retry")),
        timeout_ms=parse_timeout(options.get("timeout")),
        status_rule=parse_status_rule(options.get("validate_status")),
        signal=_parse_signal(options.get("controller"), options.get("signal")),
    )
