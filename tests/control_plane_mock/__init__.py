"""Control-plane mock for reconciler testing.

This package provides an in-memory implementation of the container control
plane that enables reconciler testing without network access.

Key Features:
- In-memory state for deployments, scaling, jobs, secrets and credentials
- Remote-silent field simulation (fields accepted but never returned)
- Asynchronous deletion simulation (resource lingers for N reads)
- Error injection for testing failure scenarios
- Deterministic clock for the deletion poller

Usage:
    from control_plane_mock import FakeClock, MockGateway

    gateway = MockGateway()
    clock = FakeClock()
    reconciler = ContainerDeploymentReconciler(gateway, clock=clock)
    result = reconciler.create(declared)

    assert gateway.call_count("create_deployment") == 1
"""

from .clock import FakeClock
from .gateway import CallRecord, MockGateway
from .state import MockControlPlaneState

__all__ = [
    "CallRecord",
    "FakeClock",
    "MockControlPlaneState",
    "MockGateway",
]
