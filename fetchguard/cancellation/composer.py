"""Cancellation composer: one effective signal per attempt.

- Fires as soon as any input fires and remembers which input it was
- Per-attempt timeout stays a separate input so the classifier can tell
  "caller asked us to stop" apart from "we gave up waiting"
- close() detaches every listener it registered on the inputs
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fetchguard.cancellation.signal import AbortSignal
from fetchguard.shared.types import AbortSource

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from fetchguard.cancellation.signal import AbortController

logger = logging.getLogger(__name__)


class ComposedSignal(AbortSignal):
    """Effective signal of a single attempt."""

    def __init__(self, inputs: list[tuple[AbortSource, AbortSignal]]) -> None:
        super().__init__(AbortSource.HANDLE)
        self._detach: list[tuple[AbortSignal, Callable[[AbortSignal], None]]] = []
        self._closed = False

        for source, signal in inputs:
            if signal.aborted:
                self._fire(signal.reason, source)
                return

        for source, signal in inputs:
            listener = self._make_listener(source)
            signal.add_listener(listener)
            self._detach.append((signal, listener))

    @property
    def timeout_fired(self) -> bool:
        return self.aborted and self.fired_source is AbortSource.TIMEOUT

    @property
    def closed(self) -> bool:
        return self._closed

    def _make_listener(self, source: AbortSource) -> Callable[[AbortSignal], None]:
        def on_abort(signal: AbortSignal) -> None:
            self._on_input(source, signal.reason)

        return on_abort

    def _on_input(self, source: AbortSource, reason: Any) -> None:
        logger.debug("Effective signal fired by %s", source.value)
        self._fire(reason, source)
        self.close()

    def close(self) -> None:
        """Detach from all inputs. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        detach, self._detach = self._detach, []
        for signal, listener in detach:
            signal.remove_listener(listener)

    def __enter__(self) -> ComposedSignal:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def compose(
    user_signal: AbortSignal | None,
    timeout_signal: AbortSignal | None,
    attempt_controller: AbortController,
) -> ComposedSignal:
    """Merge the caller signal, the timeout signal and the attempt handle.

    When an input is already aborted the result is born aborted, checked
    in the order caller, handle, timeout.
    """
    inputs: list[tuple[AbortSource, AbortSignal]] = []
    if user_signal is not None:
        inputs.append((AbortSource.CALLER, user_signal))
    inputs.append((AbortSource.HANDLE, attempt_controller.signal))
    if timeout_signal is not None:
        inputs.append((AbortSource.TIMEOUT, timeout_signal))
    return ComposedSignal(inputs)


def any_signal(signals: list[AbortSignal]) -> ComposedSignal:
    """Compose arbitrary signals, each reported under its own source tag."""
    return ComposedSignal([(signal.source, signal) for signal in signals])
