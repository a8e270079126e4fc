"""TransportPort implementation on httpx.AsyncClient.

Uses an injected client when given (caller owns its lifecycle),
otherwise opens a short-lived client per attempt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from fetchguard.ports.transport_port import TransportPort
from fetchguard.shared.logging.error_handler import redact_url

if TYPE_CHECKING:
    from fetchguard.cancellation.signal import AbortSignal
    from fetchguard.request import RequestSpec

logger = logging.getLogger(__name__)


class HttpxTransport(TransportPort):
    """httpx-backed transport.

    httpx's own timeout is disabled by default: per-attempt timeouts are
    handled by the orchestrator so they can be told apart from caller
    cancellation.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | float | None = None,
        follow_redirects: bool = True,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._follow_redirects = follow_redirects

    async def send(self, request: RequestSpec, *, signal: AbortSignal) -> httpx.Response:
        signal.throw_if_aborted()
        if self._client is not None:
            return await self._send(self._client, request)

        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=self._follow_redirects,
        ) as client:
            return await self._send(client, request)

    async def _send(self, client: httpx.AsyncClient, request: RequestSpec) -> httpx.Response:
        url = redact_url(request.url)
        logger.debug("HTTP %s %s", request.method, url)
        response = await client.request(
            request.method,
            request.url,
            headers=request.header_map(),
            content=request.body,
        )
        logger.debug("HTTP %s %s -> %d", request.method, url, response.status_code)
        return response
