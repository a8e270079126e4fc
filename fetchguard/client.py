"""Composition root: bind the orchestrator to a transport.

``fetch`` uses a default HttpxTransport; ``create`` builds a client with a
base URL, its own transport and default options.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fetchguard.orchestrator import Orchestration, orchestrate
from fetchguard.transport.httpx_transport import HttpxTransport

if TYPE_CHECKING:
    from fetchguard.ports.transport_port import TransportPort
    from fetchguard.settings import ClientSettings

logger = logging.getLogger(__name__)


class Fetcher:
    """Callable client: ``await fetcher("/path", **options)``."""

    def __init__(
        self,
        *,
        transport: TransportPort,
        base_url: str = "",
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self._transport = transport
        self._base_url = base_url
        self._defaults = dict(defaults or {})

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    def __call__(self, url: str, **options: Any) -> Orchestration:
        target = self._base_url + url if self._base_url else url
        merged = {**self._defaults, **options}
        return orchestrate(target, transport=self._transport, **merged)


def create(
    base_url: str | None = None,
    *,
    transport: TransportPort | None = None,
    settings: ClientSettings | None = None,
    **defaults: Any,
) -> Fetcher:
    """Build a Fetcher.

    Defaults come from ``settings`` first, then ``defaults``; per-call
    options override both.
    """
    merged: dict[str, Any] = settings.as_defaults() if settings is not None else {}
    merged.update(defaults)
    logger.debug("Creating fetcher base_url=%r defaults=%s", base_url, sorted(merged))
    return Fetcher(
        transport=transport or HttpxTransport(),
        base_url=base_url or "",
        defaults=merged,
    )


_default_transport = HttpxTransport()


def fetch(url: str, **options: Any) -> Orchestration:
    """Orchestrate one request through the default httpx transport."""
    return orchestrate(url, transport=_default_transport, **options)
