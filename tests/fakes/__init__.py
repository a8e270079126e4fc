"""Shared Fake adapters for testing without unittest.mock.

All Fake implementations follow the Port DI adapter pattern:
real Python classes with preset behaviour, no AsyncMock/MagicMock.
"""

from tests.fakes.transport import FakeTransport, fail, hang, make_response, respond, run

__all__ = [
    "FakeTransport",
    "fail",
    "hang",
    "make_response",
    "respond",
    "run",
]
