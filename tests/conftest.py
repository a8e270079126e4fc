"""Root conftest - shared fixtures for all test layers.

Markers:
    @pytest.mark.unit       - No network, fakes only
    @pytest.mark.smoke      - Fast subset
"""

from __future__ import annotations

import pytest

from fetchguard.cancellation.signal import AbortController
from fetchguard.request import RequestSpec
from fetchguard.shared.types import AbortSource

BASE_URL = "https://api.test"


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def caller_controller() -> AbortController:
    """Externally owned controller, passed as the ``controller`` option."""
    return AbortController(AbortSource.CALLER)


@pytest.fixture
def sample_request() -> RequestSpec:
    return RequestSpec(url=f"{BASE_URL}/items", headers=(("accept", "application/json"),))

