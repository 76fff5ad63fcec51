"""Core phasegate functionality."""

from .artifact_store import Artifact, ArtifactStore
from .exceptions import (
    ArtifactStoreError,
    ConfigurationError,
    CorruptStateError,
    ExecutorError,
    ExecutorTimeoutError,
    InvalidTransitionError,
    MissingArtifactError,
    MissingStateError,
    OrchestrationError,
    PhaseExecutionError,
    PhaseGateError,
    PrecedenceViolationError,
    RunNotFoundError,
    StateStoreError,
)
from .executor import (
    CommandPhaseExecutor,
    PhaseExecutor,
    PhaseRequest,
    PhaseResult,
    extract_summary,
)
from .phase_state import (
    Decision,
    DecisionRecord,
    Phase,
    PhaseEntry,
    PhaseStatus,
    RunMode,
    RunStatus,
    StateRecord,
    get_valid_next_statuses,
    is_terminal_status,
    is_valid_transition,
    parse_phase,
)
from .run import Run
from .run_manager import LATEST, RunManager
from .state_store import StateStore

__all__ = [
    # Exceptions
    "PhaseGateError",
    "ConfigurationError",
    "OrchestrationError",
    "RunNotFoundError",
    "StateStoreError",
    "MissingStateError",
    "CorruptStateError",
    "ArtifactStoreError",
    "MissingArtifactError",
    "PrecedenceViolationError",
    "InvalidTransitionError",
    "PhaseExecutionError",
    "ExecutorError",
    "ExecutorTimeoutError",
    # State model
    "Phase",
    "PhaseStatus",
    "RunMode",
    "RunStatus",
    "Decision",
    "DecisionRecord",
    "PhaseEntry",
    "StateRecord",
    "is_valid_transition",
    "get_valid_next_statuses",
    "is_terminal_status",
    "parse_phase",
    # Storage
    "Run",
    "RunManager",
    "LATEST",
    "StateStore",
    "Artifact",
    "ArtifactStore",
    # Executors
    "PhaseExecutor",
    "PhaseRequest",
    "PhaseResult",
    "CommandPhaseExecutor",
    "extract_summary",
]
