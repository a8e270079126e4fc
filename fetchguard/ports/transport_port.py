"""TransportPort - one HTTP attempt.

The orchestrator depends on this interface only, so tests substitute a
deterministic fake and production uses HttpxTransport. Connection
pooling, HTTP versions, TLS and proxies all live behind it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from fetchguard.cancellation.signal import AbortSignal
    from fetchguard.request import RequestSpec


class TransportPort(ABC):
    """Port: perform a single HTTP attempt."""

    @abstractmethod
    async def send(self, request: RequestSpec, *, signal: AbortSignal) -> httpx.Response:
        """Send ``request`` and return the response with its body read.

        Args:
            request: Immutable request description shared by all attempts.
            signal: Effective signal of this attempt. The orchestrator also
                races the call against it, so implementations may ignore it.

        Returns:
            The response. Non-2xx statuses are not errors at this level.

        Raises:
            Exception: Any transport-level failure (DNS, connect, reset...).
        """
