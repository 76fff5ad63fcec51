"""Mock utilities for testing."""

from .phase_mocks import (
    MockPhaseExecutor,
    MockProcess,
    create_mock_popen,
)

__all__ = [
    "MockPhaseExecutor",
    "MockProcess",
    "create_mock_popen",
]
