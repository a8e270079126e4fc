"""Retry configuration and the backoff sequence consulted between attempts.

- ``retry.max`` is the number of retries: max=N allows N+1 attempts
- Delays in milliseconds: linear delay*n, exponential delay*2**(n-1),
  constant delay; capped by max_delay, then jittered by +-jitter*delay
- The orchestrator never retries on its own; only next() decides
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from fetchguard.shared.errors import ConfigurationError

if TYPE_CHECKING:
    from fetchguard.cancellation.signal import AbortSignal

logger = logging.getLogger(__name__)


class RetryConfig(BaseModel):
    """Validated ``retry`` option."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max: int = Field(default=3, ge=0)
    delay: float = Field(default=1000.0, ge=0)  # ms
    strategy: Literal["linear", "exponential", "constant"] = "linear"
    jitter: float = Field(default=0.0, ge=0.0, le=1.0)
    max_delay: float | None = Field(default=None, ge=0)  # ms

    def delay_for_retry(self, retry: int) -> float:
        """Un-jittered delay in ms before the given retry (1-indexed)."""
        if self.strategy == "linear":
            delay = self.delay * retry
        elif self.strategy == "exponential":
            delay = self.delay * (2 ** (retry - 1))
        else:
            delay = self.delay
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


def parse_retry(value: object) -> RetryConfig | None:
    """Accept None, a RetryConfig or a mapping; anything else is a config error."""
    if value is None or isinstance(value, RetryConfig):
        return value
    if not isinstance(value, Mapping):
        msg = f"retry must be a mapping or RetryConfig, got {type(value).__name__}"
        raise ConfigurationError(msg, option="retry")
    try:
        return RetryConfig.model_validate(dict(value))
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid retry options: {exc}", option="retry") from exc


@dataclass(frozen=True)
class Continue:
    """Wait ``delay`` seconds, then attempt again."""

    delay: float
    retry: int


@dataclass(frozen=True)
class GiveUp:
    """Retry budget exhausted; settle with ``error``."""

    error: BaseException
    retries: int


BackoffStep = Continue | GiveUp


class BackoffPolicy:
    """Lazy sequence of wait-or-give-up decisions for one orchestration."""

    def __init__(self, config: RetryConfig | None, *, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random()
        self._retries = 0

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def max_retries(self) -> int:
        return self._config.max if self._config is not None else 0

    def next(self, error: BaseException) -> BackoffStep:
        """Decide what follows a retryable failure."""
        if self._config is None or self._retries >= self._config.max:
            return GiveUp(error=error, retries=self._retries)

        self._retries += 1
        delay_ms = self._config.delay_for_retry(self._retries)
        if self._config.jitter:
            spread = self._config.jitter * delay_ms
            delay_ms = max(0.0, delay_ms + self._rng.uniform(-spread, spread))
        return Continue(delay=delay_ms / 1000.0, retry=self._retries)


async def sleep_unless_aborted(delay: float, signal: AbortSignal) -> None:
    """Sleep ``delay`` seconds; raise AbortError as soon as ``signal`` fires."""
    signal.throw_if_aborted()
    sleeper = asyncio.ensure_future(asyncio.sleep(delay))
    watcher = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait([sleeper, watcher], return_when=asyncio.FIRST_COMPLETED)
    finally:
        sleeper.cancel()
        watcher.cancel()
        await asyncio.gather(sleeper, watcher, return_exceptions=True)

    if signal.aborted:
        logger.debug("Backoff wait interrupted by %s", signal.fired_source)
        signal.throw_if_aborted()
