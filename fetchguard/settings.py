"""Client defaults from the environment.

    FETCHGUARD_TIMEOUT_MS       per-attempt timeout (0 disables)
    FETCHGUARD_RETRY_MAX        retries after the first attempt (unset: no retry)
    FETCHGUARD_RETRY_DELAY_MS   base backoff delay
    FETCHGUARD_RETRY_STRATEGY   linear | exponential | constant

Per-call options always win over these defaults.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fetchguard.resilience.backoff import parse_retry
from fetchguard.shared.errors import ConfigurationError

_ENV_PREFIX = "FETCHGUARD_"


@dataclass(frozen=True)
class ClientSettings:
    """Defaults applied to every call made through a client."""

    timeout_ms: float | None = None
    retry_max: int | None = None
    retry_delay_ms: float = 1000.0
    retry_strategy: str = "linear"

    def as_defaults(self) -> dict[str, Any]:
        """Option defaults for ``create``; omits anything left unset."""
        defaults: dict[str, Any] = {}
        if self.timeout_ms:
            defaults["timeout"] = self.timeout_ms
        if self.retry_max is not None:
            defaults["retry"] = parse_retry(
                {
                    "max": self.retry_max,
                    "delay": self.retry_delay_ms,
                    "strategy": self.retry_strategy,
                }
            )
        return defaults


def _number(environ: Mapping[str, str], name: str, *, integer: bool = False) -> float | int | None:
    raw = environ.get(_ENV_PREFIX + name, "").strip()
    if not raw:
        return None
    try:
        value: float | int = int(raw) if integer else float(raw)
    except ValueError:
        msg = f"{_ENV_PREFIX}{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg, option=name.lower()) from None
    if value < 0:
        msg = f"{_ENV_PREFIX}{name} must not be negative, got {raw!r}"
        raise ConfigurationError(msg, option=name.lower())
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> ClientSettings:
    """Read ClientSettings from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    timeout_ms = _number(env, "TIMEOUT_MS")
    retry_max = _number(env, "RETRY_MAX", integer=True)
    retry_delay_ms = _number(env, "RETRY_DELAY_MS")
    strategy = env.get(_ENV_PREFIX + "RETRY_STRATEGY", "").strip() or "linear"

    settings = ClientSettings(
        timeout_ms=float(timeout_ms) if timeout_ms else None,
        retry_max=int(retry_max) if retry_max is not None else None,
        retry_delay_ms=float(retry_delay_ms) if retry_delay_ms is not None else 1000.0,
        retry_strategy=strategy,
    )
    # Surface a bad strategy now rather than on the first request.
    settings.as_defaults()
    return settings
