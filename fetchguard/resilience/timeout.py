"""Per-attempt timeout source.

- Disabled when the timeout is None or 0
- Fires its own signal (AbortSource.TIMEOUT) via loop.call_later
- cancel() clears the pending timer; the orchestrator calls it when the
  attempt concludes, whatever the outcome
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fetchguard.cancellation.signal import AbortController
from fetchguard.shared.errors import ConfigurationError
from fetchguard.shared.types import AbortSource

if TYPE_CHECKING:
    from fetchguard.cancellation.signal import AbortSignal


def parse_timeout(value: object) -> float | None:
    """Validate the ``timeout`` option (milliseconds)."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"timeout must be a number of milliseconds, got {value!r}"
        raise ConfigurationError(msg, option="timeout")
    if value < 0:
        msg = f"timeout must not be negative, got {value!r}"
        raise ConfigurationError(msg, option="timeout")
    if value == 0:
        return None
    return float(value)


class TimeoutSource:
    """Timer-backed abort source for one attempt."""

    def __init__(self, timeout_ms: float) -> None:
        self._timeout_ms = timeout_ms
        self._controller = AbortController(AbortSource.TIMEOUT)
        self._handle: asyncio.TimerHandle | None = None

    @classmethod
    def start(cls, timeout_ms: float | None) -> TimeoutSource | None:
        if not timeout_ms:
            return None
        source = cls(timeout_ms)
        loop = asyncio.get_running_loop()
        source._handle = loop.call_later(timeout_ms / 1000.0, source._expire)
        return source

    @property
    def signal(self) -> AbortSignal:
        return self._controller.signal

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _expire(self) -> None:
        self._handle = None
        self._controller.abort(reason=f"timeout after {self._timeout_ms:g}ms")

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
