"""Port interfaces consumed by the orchestrator.

    TransportPort - one HTTP attempt (default adapter: HttpxTransport)
"""

from fetchguard.ports.transport_port import TransportPort

__all__ = ["TransportPort"]
