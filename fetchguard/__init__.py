"""fetchguard - HTTP requests with retry, cancellation and typed failures.

    fetch(url, **options)             -> Orchestration (awaitable)
    create(base_url, **defaults)      -> Fetcher
    orchestrate(url, transport=...)   -> Orchestration with an injected transport
"""

from fetchguard.cancellation.signal import AbortController, AbortSignal
from fetchguard.client import Fetcher, create, fetch
from fetchguard.codec.query import encode_query
from fetchguard.orchestrator import Orchestration, OrchestratorState, orchestrate
from fetchguard.ports.transport_port import TransportPort
from fetchguard.resilience.backoff import RetryConfig
from fetchguard.shared.errors import (
    AbortError,
    AttemptTimeoutError,
    ConfigurationError,
    FetchGuardError,
    ResponseDecodeError,
    TransportError,
    UserCancelledError,
    ValidationFailedError,
)
from fetchguard.shared.types import AbortSource
from fetchguard.transport.httpx_transport import HttpxTransport

__all__ = [
    "AbortController",
    "AbortError",
    "AbortSignal",
    "AbortSource",
    "AttemptTimeoutError",
    "ConfigurationError",
    "FetchGuardError",
    "Fetcher",
    "HttpxTransport",
    "Orchestration",
    "OrchestratorState",
    "ResponseDecodeError",
    "RetryConfig",
    "TransportError",
    "TransportPort",
    "UserCancelledError",
    "ValidationFailedError",
    "create",
    "encode_query",
    "fetch",
    "orchestrate",
]
