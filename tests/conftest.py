"""Pytest configuration and fixtures."""

import copy
import sys
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for control_plane_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from control_plane_mock import FakeClock, MockGateway  # noqa: E402

from deploysync.config import Config  # noqa: E402

SCALING: dict[str, Any] = {
    "min_replica_count": 1,
    "max_replica_count": 3,
    "queue_message_ttl_seconds": 300,
    "concurrent_requests_per_replica": 1,
    "scale_up_policy": {"delay_seconds": 0},
    "scale_down_policy": {"delay_seconds": 300},
    "triggers": {"queue_load": {"threshold": 1.0}},
}

CONTAINER: dict[str, Any] = {
    "image": "registry.example.test/svc:1.0",
    "exposed_port": 8080,
}

DEPLOYMENT: dict[str, Any] = {
    "name": "svc",
    "compute": {"name": "H100", "size": 1},
    "scaling": SCALING,
    "containers": [CONTAINER],
}


@pytest.fixture
def scaling_data() -> dict[str, Any]:
    """Valid declared scaling configuration."""
    return copy.deepcopy(SCALING)


@pytest.fixture
def container_data() -> dict[str, Any]:
    """Valid declared container."""
    return copy.deepcopy(CONTAINER)


@pytest.fixture
def deployment_data() -> dict[str, Any]:
    """Valid declared container deployment with one container."""
    return copy.deepcopy(DEPLOYMENT)


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    return Config(api_url="https://api.example.test/v1", api_token="test-token")
