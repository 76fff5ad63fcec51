"""Shared pytest fixtures for phasegate tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

import pytest
import yaml

from phasegate.bootstrap import TargetContext
from phasegate.core import ArtifactStore, Run, RunManager, StateStore
from phasegate.orchestrator import CLIDispatcher, PhaseController
from phasegate.tracking.activity_logger import ActivityLogger
from tests.mocks import MockPhaseExecutor


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def runs_dir(tmp_path: Path) -> Path:
    """Directory holding run directories."""
    return tmp_path / "runs"


@pytest.fixture
def state_store() -> StateStore:
    return StateStore()


@pytest.fixture
def artifact_store() -> ArtifactStore:
    return ArtifactStore()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that advances one second per call, starting 2026-01-01 12:00 UTC."""
    start = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    calls = {"count": 0}

    def _clock() -> datetime:
        moment = start + timedelta(seconds=calls["count"])
        calls["count"] += 1
        return moment

    return _clock


@pytest.fixture
def run_manager(runs_dir: Path, state_store: StateStore, fixed_clock) -> RunManager:
    return RunManager(runs_dir, state_store=state_store, clock=fixed_clock)


@pytest.fixture
def run(run_manager: RunManager) -> Run:
    """A freshly created full-mode run."""
    return run_manager.create_run()


# ============================================================================
# Orchestration Fixtures
# ============================================================================


@pytest.fixture
def target_context() -> TargetContext:
    return TargetContext(
        base_url="https://app.example.test",
        auth_url="https://auth.example.test",
        build_id="42",
    )


@pytest.fixture
def mock_executor() -> Generator[MockPhaseExecutor, None, None]:
    """Provide a fresh MockPhaseExecutor for each test.

    Yields:
        MockPhaseExecutor instance that is reset after each test
    """
    executor = MockPhaseExecutor()
    yield executor
    executor.reset()


@pytest.fixture
def controller(
    state_store: StateStore,
    artifact_store: ArtifactStore,
    mock_executor: MockPhaseExecutor,
    target_context: TargetContext,
) -> PhaseController:
    return PhaseController(
        state_store=state_store,
        artifact_store=artifact_store,
        executor=mock_executor,
        context=target_context,
    )


@pytest.fixture
def activity_logger(runs_dir: Path) -> ActivityLogger:
    return ActivityLogger(runs_dir)


@pytest.fixture
def dispatcher(
    run_manager: RunManager,
    controller: PhaseController,
    activity_logger: ActivityLogger,
) -> CLIDispatcher:
    """Dispatcher with the trust policy and activity logging."""
    controller.add_listener(activity_logger.on_transition)
    return CLIDispatcher(
        run_manager=run_manager,
        controller=controller,
        activity_logger=activity_logger,
    )


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config_dict(tmp_path: Path) -> dict:
    """Sample configuration dictionary pointing storage at tmp_path."""
    return {
        "storage": {"runs_dir": str(tmp_path / "runs")},
        "executor": {
            "command": "claude --dangerously-skip-permissions",
            "working_dir": str(tmp_path),
            "timeout": "10m",
        },
        "orchestrator": {"explicit_phase_policy": "trust"},
        "target": {"base_url": "https://app.example.test", "build_id": "7"},
        "logging": {"enabled": True, "level": "INFO"},
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_config_dict: dict) -> Path:
    config_path = tmp_path / "phasegate.yaml"
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(sample_config_dict, f, default_flow_style=False)
    return config_path


@pytest.fixture
def isolated_config_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep global and project configuration from leaking into a test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test (fast, isolated)")
    config.addinivalue_line("markers", "integration: mark test as crossing module boundaries")
