"""phasegate exception classes."""

from typing import Any, Optional


class PhaseGateError(Exception):
    """Base exception for all phasegate errors."""

    pass


class ConfigurationError(PhaseGateError):
    """Raised when configuration is invalid."""

    pass


class OrchestrationError(PhaseGateError):
    """Base for errors raised while operating on a run.

    Carries the offending run id, phase index and the phase status observed
    before the failed operation so the operator can pick the next action.
    """

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        phase: Optional[int] = None,
        status: Optional[Any] = None,
    ):
        self.run_id = run_id
        self.phase = phase
        self.status = getattr(status, "value", status)
        self.message = message
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.run_id is not None:
            context.append(f"run={self.run_id}")
        if self.phase is not None:
            context.append(f"phase={self.phase}")
        if self.status is not None:
            context.append(f"status={self.status}")

        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


class RunNotFoundError(OrchestrationError):
    """Raised when a run selector matches no run."""

    pass


class StateStoreError(OrchestrationError):
    """Raised when the state record cannot be written."""

    pass


class MissingStateError(StateStoreError):
    """Raised when a run has no state record."""

    pass


class CorruptStateError(StateStoreError):
    """Raised when a state record cannot be parsed."""

    pass


class ArtifactStoreError(OrchestrationError):
    """Raised when an artifact cannot be written or read."""

    pass


class MissingArtifactError(ArtifactStoreError):
    """Raised when a phase has not produced an artifact yet."""

    pass


class PrecedenceViolationError(OrchestrationError):
    """Raised when a phase is started before its predecessor is settled."""

    pass


class InvalidTransitionError(OrchestrationError):
    """Raised when a decision does not match the phase's current status."""

    pass


class PhaseExecutionError(OrchestrationError):
    """Raised when the phase executor reports a failure."""

    pass


class ExecutorError(PhaseGateError):
    """Raised by executors when the external command fails."""

    pass


class ExecutorTimeoutError(ExecutorError):
    """Raised when the external command exceeds its timeout."""

    pass


class PromptLoadError(PhaseGateError):
    """Raised when a prompt template cannot be loaded."""

    pass


class PromptRenderError(PhaseGateError):
    """Raised when a prompt template cannot be rendered."""

    pass
