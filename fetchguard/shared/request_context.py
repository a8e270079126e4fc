"""Request-id propagation via contextvars.

Every orchestration runs under its own request id so log records and
structured errors emitted from any layer can be correlated.
"""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003 -- used at runtime by contextmanager
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

current_request_id: ContextVar[str] = ContextVar("current_request_id", default="")


def get_request_id() -> str:
    """Return the current request id (empty string outside an orchestration)."""
    return current_request_id.get()


def new_request_id() -> str:
    return uuid4().hex[:12]


@contextmanager
def request_context(request_id: str | None = None) -> Generator[str, None, None]:
    """Scope ``request_id`` to the ``with`` block, generating one if empty."""
    effective_id = request_id or new_request_id()
    token = current_request_id.set(effective_id)
    try:
        yield effective_id
    finally:
        current_request_id.reset(token)
