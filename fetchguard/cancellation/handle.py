"""Current-attempt cancellation handle.

Single writer (the orchestrator, once per attempt), any number of
readers. Readers get a snapshot of the controller governing the attempt
in flight; a reference captured before a retry starts is stale afterwards
and aborting it no longer affects the orchestration. Callers that want
to cancel "whatever is running now" must re-read the handle.
"""

from __future__ import annotations

from fetchguard.cancellation.signal import AbortController
from fetchguard.shared.types import AbortSource


class CancellationHandleCell:
    """Holds the controller of the current attempt."""

    def __init__(self) -> None:
        self._controller: AbortController | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of handles published so far."""
        return self._generation

    def publish(self) -> AbortController:
        """Replace the current handle with a fresh controller and return it."""
        controller = AbortController(AbortSource.HANDLE)
        self._controller = controller
        self._generation += 1
        return controller

    def snapshot(self) -> AbortController:
        if self._controller is None:
            msg = "No cancellation handle has been published yet"
            raise LookupError(msg)
        return self._controller
