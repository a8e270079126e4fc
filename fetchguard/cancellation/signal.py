"""Abort controller / signal primitives for asyncio.

An AbortController owns exactly one AbortSignal. Aborting is idempotent
and notifies listeners synchronously, in registration order. Signals are
tagged with the AbortSource they represent so a fired signal can report
which input caused it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fetchguard.shared.errors import AbortError, ConfigurationError
from fetchguard.shared.types import AbortSource

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class AbortSignal:
    """Read side of an AbortController."""

    def __init__(self, source: AbortSource) -> None:
        self._source = source
        self._aborted = False
        self._reason: Any = None
        self._fired_source: AbortSource | None = None
        self._listeners: list[Callable[[AbortSignal], None]] = []
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def source(self) -> AbortSource:
        return self._source

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    @property
    def fired_source(self) -> AbortSource | None:
        """Source that caused the abort (differs from ``source`` for composed signals)."""
        return self._fired_source

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: Callable[[AbortSignal], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[AbortSignal], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def throw_if_aborted(self) -> None:
        if self._aborted:
            raise AbortError(source=self._fired_source, reason=self._reason)

    async def wait(self) -> None:
        """Suspend until the signal is aborted."""
        if self._aborted:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _fire(self, reason: Any, fired_source: AbortSource) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        self._fired_source = fired_source
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(None)
        # Listeners run once; snapshot so they may detach themselves.
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)

    def __repr__(self) -> str:
        state = f"aborted by {self._fired_source.value}" if self._aborted and self._fired_source else "pending"
        return f"<AbortSignal {self._source.value} {state}>"


class AbortController:
    """Write side: aborts its signal."""

    def __init__(self, source: AbortSource = AbortSource.HANDLE) -> None:
        self._signal = AbortSignal(source)

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    @property
    def aborted(self) -> bool:
        return self._signal.aborted

    def abort(self, reason: Any = None) -> None:
        """Abort the signal. A second call is a no-op."""
        if self._signal.aborted:
            return
        logger.debug("Abort requested on %s signal", self._signal.source.value)
        self._signal._fire(reason, self._signal.source)


def check_signal_pairing(
    controller: AbortController | None,
    signal: AbortSignal | None,
) -> AbortSignal | None:
    """Resolve the external signal from a controller and/or a raw signal.

    Both may be given only when they refer to the same controller.
    """
    if controller is not None and signal is not None and controller.signal is not signal:
        msg = "signal does not belong to the supplied controller"
        raise ConfigurationError(msg, option="signal")
    if controller is not None:
        return controller.signal
    return signal
