"""Phase controller: the run state machine.

Every operation reads the persisted state record, checks its
preconditions, and writes the record back after each transition. Nothing
is held in memory between calls, so a run can be suspended at a checkpoint
(``awaiting-approval``), the process can exit, and a later invocation picks
up from the record alone.
"""

from typing import Callable, List, Optional

from ..bootstrap import TargetContext
from ..core.artifact_store import ArtifactStore
from ..core.exceptions import (
    ExecutorError,
    InvalidTransitionError,
    PhaseExecutionError,
    PrecedenceViolationError,
)
from ..core.executor import PhaseExecutor, PhaseRequest
from ..core.phase_state import (
    SETTLED_STATUSES,
    Decision,
    Phase,
    PhaseStatus,
    RunStatus,
    StateRecord,
    get_valid_next_statuses,
    is_valid_transition,
    parse_phase,
)
from ..core.run import Run
from ..core.state_store import StateStore

TransitionListener = Callable[[str, Phase, PhaseStatus, PhaseStatus], None]


class PhaseController:
    """Validates and applies phase transitions for a run."""

    def __init__(
        self,
        state_store: StateStore,
        artifact_store: ArtifactStore,
        executor: Optional[PhaseExecutor] = None,
        context: Optional[TargetContext] = None,
    ):
        """Initialize the controller.

        Args:
            state_store: Store for state records
            artifact_store: Store for phase artifacts
            executor: Executor invoked for each phase run; None for a
                controller that only reads and decides
            context: Target context forwarded to the executor. Its build id
                is pinned to the run on first use
        """
        self.state_store = state_store
        self.artifact_store = artifact_store
        self.executor = executor
        self.context = context
        self._listeners: List[TransitionListener] = []

    def add_listener(self, listener: TransitionListener) -> None:
        """Add a listener called with (run_id, phase, from_status, to_status)."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def read_state(self, run: Run) -> StateRecord:
        return self.state_store.read(run)

    def start_phase(
        self,
        run: Run,
        phase: int,
        override: bool = False,
        feedback: Optional[str] = None,
    ) -> StateRecord:
        """Run a phase and suspend it at its checkpoint.

        Args:
            run: Run to advance
            phase: Phase index (1..5)
            override: Skip the predecessor check (explicit-phase invocation)
            feedback: Optional feedback forwarded to the executor

        Returns:
            The state record with the phase awaiting approval

        Raises:
            InvalidTransitionError: If the run or phase cannot start
            PrecedenceViolationError: If the previous phase is not settled
            PhaseExecutionError: If the executor fails; the phase is recorded failed
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        status = record.status_of(p)

        if record.run_status == RunStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Run is completed; phase {p.label} cannot start",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )
        if record.run_status == RunStatus.FAILED and status != PhaseStatus.FAILED:
            raise InvalidTransitionError(
                "Run has failed; only the failed phase can be restarted",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )
        if status not in (PhaseStatus.PENDING, PhaseStatus.FAILED):
            raise InvalidTransitionError(
                f"Phase {p.label} cannot start from {status.value}",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )

        if p > Phase.SCAN and not override:
            previous = Phase(p - 1)
            previous_status = record.status_of(previous)
            if previous_status not in SETTLED_STATUSES:
                raise PrecedenceViolationError(
                    f"Phase {p.label} requires phase {previous.label} to be approved "
                    f"or skipped, but it is {previous_status.value}",
                    run_id=run.run_id,
                    phase=int(p),
                    status=status,
                )

        active = record.active_phase()
        if active is not None:
            raise InvalidTransitionError(
                f"Phase {active.phase.label} is {active.status.value}; "
                "approve or revise it before starting another phase",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )

        request = self._prepare_request(run, record, p, feedback)
        record.run_status = RunStatus.ACTIVE
        record.error_message = None
        self._transition(run, record, p, PhaseStatus.RUNNING)
        return self._execute(run, record, request)

    def rerun_phase(self, run: Run, phase: int) -> StateRecord:
        """Re-execute a phase left running by an interrupted process.

        The interrupted attempt's feedback, if it had any, is sent again.
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        status = record.status_of(p)

        if status != PhaseStatus.RUNNING:
            raise InvalidTransitionError(
                f"Only a running phase can be re-run; phase {p.label} is {status.value}",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )

        request = self._prepare_request(run, record, p, record.entry(p).feedback)
        self._transition(run, record, p, PhaseStatus.RUNNING)
        return self._execute(run, record, request)

    def approve_phase(self, run: Run, phase: int) -> StateRecord:
        """Approve a phase waiting at its checkpoint.

        Approving phase 5 completes the run.

        Raises:
            InvalidTransitionError: If the phase is not awaiting approval
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        self._require_awaiting(run, record, p, "approved")

        record.add_decision(p, Decision.APPROVE)
        if p == Phase.VALIDATE:
            record.run_status = RunStatus.COMPLETED
        self._transition(run, record, p, PhaseStatus.APPROVED)
        return record

    def request_revision(
        self, run: Run, phase: int, feedback: Optional[str] = None
    ) -> StateRecord:
        """Re-run a phase waiting at its checkpoint with operator feedback.

        The new artifact supersedes the previous one and the phase returns
        to ``awaiting-approval``.

        Raises:
            InvalidTransitionError: If the phase is not awaiting approval
                or the run is terminal
            PhaseExecutionError: If the executor fails
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        self._require_awaiting(run, record, p, "revised")

        if record.is_terminal():
            raise InvalidTransitionError(
                f"Run is {record.run_status.value}; phase {p.label} cannot be revised",
                run_id=run.run_id,
                phase=int(p),
                status=record.status_of(p),
            )

        request = self._prepare_request(run, record, p, feedback)
        record.add_decision(p, Decision.REVISE, feedback=feedback)
        self._transition(run, record, p, PhaseStatus.RUNNING)
        return self._execute(run, record, request)

    def skip_phase(self, run: Run, phase: int) -> StateRecord:
        """Mark a pending phase skipped, if the run's mode allows it.

        Raises:
            InvalidTransitionError: If the phase is not skippable or not pending
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        status = record.status_of(p)

        if p not in record.skippable:
            raise InvalidTransitionError(
                f"Phase {p.label} is not skippable in {record.mode.value} mode",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )
        if status != PhaseStatus.PENDING:
            raise InvalidTransitionError(
                f"Only a pending phase can be skipped; phase {p.label} is {status.value}",
                run_id=run.run_id,
                phase=int(p),
                status=status,
            )

        record.add_decision(p, Decision.SKIP)
        self._transition(run, record, p, PhaseStatus.SKIPPED)
        return record

    def close_run(self, run: Run) -> StateRecord:
        """Mark a run completed once no phase is left pending."""
        record = self.state_store.read(run)

        pending = [e for e in record.phases if e.status == PhaseStatus.PENDING]
        if pending:
            first = pending[0]
            raise InvalidTransitionError(
                f"Run cannot be closed while phase {first.phase.label} is pending",
                run_id=run.run_id,
                phase=int(first.phase),
                status=first.status,
            )

        if record.run_status == RunStatus.ACTIVE:
            record.run_status = RunStatus.COMPLETED
            self.state_store.write(run, record)
        return record

    def verify_prerequisites(self, run: Run, phase: int) -> None:
        """Check that every phase before ``phase`` is approved or skipped.

        Raises:
            PrecedenceViolationError: Naming the first unsettled phase
        """
        p = parse_phase(phase)
        record = self.state_store.read(run)
        for entry in record.phases[: int(p) - 1]:
            if entry.status not in SETTLED_STATUSES:
                raise PrecedenceViolationError(
                    f"Phase {p.label} requires phase {entry.phase.label} to be approved "
                    f"or skipped, but it is {entry.status.value}",
                    run_id=run.run_id,
                    phase=int(p),
                    status=record.status_of(p),
                )

    def _require_awaiting(
        self, run: Run, record: StateRecord, phase: Phase, verb: str
    ) -> None:
        status = record.status_of(phase)
        if status != PhaseStatus.AWAITING_APPROVAL:
            raise InvalidTransitionError(
                f"Phase {phase.label} cannot be {verb}: it is {status.value}, "
                f"not {PhaseStatus.AWAITING_APPROVAL.value}",
                run_id=run.run_id,
                phase=int(phase),
                status=status,
            )

    def _prepare_request(
        self, run: Run, record: StateRecord, phase: Phase, feedback: Optional[str]
    ) -> PhaseRequest:
        """Build the executor request for the attempt about to start.

        Stores the attempt's feedback on the phase entry and pins the build
        id to the run; both are persisted by the following transition.
        """
        if self.executor is None:
            raise ExecutorError(f"No executor configured to run phase {phase.label}")

        record.entry(phase).feedback = feedback
        return PhaseRequest(
            run_id=run.run_id,
            phase=phase,
            prior_artifacts=self.artifact_store.load_all(run, before=phase),
            feedback=feedback,
            context=self._context_for(record),
        )

    def _context_for(self, record: StateRecord) -> Optional[TargetContext]:
        """Return the target context carrying the run's build id."""
        if self.context is None:
            return None
        if record.build_id is None:
            record.build_id = self.context.build_id
            return self.context
        if record.build_id != self.context.build_id:
            return self.context.model_copy(update={"build_id": record.build_id})
        return self.context

    def _execute(self, run: Run, record: StateRecord, request: PhaseRequest) -> StateRecord:
        """Invoke the executor for a running phase and record the outcome."""
        phase = request.phase
        try:
            result = self.executor.execute(request)
        except Exception as e:
            record.run_status = RunStatus.FAILED
            record.error_message = str(e)
            self._transition(run, record, phase, PhaseStatus.FAILED)
            raise PhaseExecutionError(
                f"Phase {phase.label} failed: {e}",
                run_id=run.run_id,
                phase=int(phase),
                status=PhaseStatus.RUNNING,
            ) from e

        self.artifact_store.save(run, phase, result.content, result.summary)
        self._transition(run, record, phase, PhaseStatus.AWAITING_APPROVAL)
        return record

    def _transition(
        self, run: Run, record: StateRecord, phase: Phase, to_status: PhaseStatus
    ) -> None:
        """Apply one transition, persist it, then notify listeners."""
        from_status = record.status_of(phase)
        if not is_valid_transition(from_status, to_status):
            valid = [s.value for s in get_valid_next_statuses(from_status)]
            raise InvalidTransitionError(
                f"Invalid transition {from_status.value} -> {to_status.value}. "
                f"Valid next statuses: {valid}",
                run_id=run.run_id,
                phase=int(phase),
                status=from_status,
            )

        record.set_status(phase, to_status)
        self.state_store.write(run, record)

        for listener in self._listeners:
            listener(run.run_id, phase, from_status, to_status)
