"""Shared types used across the cancellation, classifier and orchestrator layers."""

from __future__ import annotations

import enum


class AbortSource(enum.Enum):
    """Which input of an effective signal fired."""

    CALLER = "caller"  # externally owned signal passed in options
    HANDLE = "handle"  # the published per-attempt cancellation handle
    TIMEOUT = "timeout"  # per-attempt timeout


class BodyKind(enum.Enum):
    """Declared request/response body kinds."""

    JSON = "json"
    TEXT = "text"
    URL = "url"
    FORM = "form"
    FILE = "file"


__all__ = ["AbortSource", "BodyKind"]
