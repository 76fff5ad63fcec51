"""Invocation modes mapped onto run and phase operations.

Each public method is one command-line invocation: it resolves or creates
a run, drives the controller until the next checkpoint, and returns a
``DispatchResult`` describing where the run stopped.
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from ..bootstrap import TargetContext, build_target_context
from ..config.models import ExplicitPhasePolicy, PhaseGateConfig
from ..core.artifact_store import Artifact, ArtifactStore
from ..core.exceptions import (
    InvalidTransitionError,
    PhaseExecutionError,
    RunNotFoundError,
)
from ..core.executor import CommandPhaseExecutor, PhaseExecutor
from ..core.phase_state import (
    Phase,
    PhaseStatus,
    RunMode,
    RunStatus,
    StateRecord,
    parse_phase,
)
from ..core.prompt_loader import PromptLoader
from ..core.run import Run
from ..core.run_manager import LATEST, RunManager
from ..core.state_store import StateStore
from ..tracking.activity_logger import ActivityLogger
from .controller import PhaseController


@dataclass
class DispatchResult:
    """Where a run stands after an invocation."""

    run: Run
    record: StateRecord
    phase: Optional[Phase] = None
    artifact: Optional[Artifact] = None

    @property
    def status(self) -> Optional[PhaseStatus]:
        return self.record.status_of(self.phase) if self.phase else None

    @property
    def is_checkpoint(self) -> bool:
        return self.status == PhaseStatus.AWAITING_APPROVAL


class CLIDispatcher:
    """Maps invocation modes onto RunManager and PhaseController calls."""

    def __init__(
        self,
        run_manager: RunManager,
        controller: PhaseController,
        policy: ExplicitPhasePolicy = ExplicitPhasePolicy.TRUST,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self.run_manager = run_manager
        self.controller = controller
        self.policy = policy
        self.activity_logger = activity_logger

    def full(self) -> DispatchResult:
        """Create a run and execute phase 1."""
        run = self._create_run(RunMode.FULL)
        self._execute(run, Phase.SCAN, lambda: self.controller.start_phase(run, Phase.SCAN))
        return self._present(run, Phase.SCAN)

    def phase(self, phase: int, strict: Optional[bool] = None) -> DispatchResult:
        """Execute phase N on the latest run, creating a run if none exists.

        Args:
            phase: Phase index (1..5)
            strict: Require phases 1..N-1 to be approved or skipped.
                Defaults to the configured explicit-phase policy.
        """
        p = parse_phase(phase)
        if strict is None:
            strict = self.policy == ExplicitPhasePolicy.ENFORCE

        try:
            run = self.run_manager.resolve_run(LATEST)
        except RunNotFoundError:
            run = self._create_run(RunMode.PHASE)

        if strict:
            self.controller.verify_prerequisites(run, p)

        record = self._execute(
            run, p, lambda: self.controller.start_phase(run, p, override=not strict)
        )
        if record.mode == RunMode.QUICK and p == Phase.SCAN:
            self._close_quick_run(run)
        return self._present(run, p)

    def resume(self, selector: str = LATEST, rerun: bool = False) -> DispatchResult:
        """Re-present the active phase of a run.

        Reads state only, unless ``rerun`` asks for the active phase to be
        executed again.
        """
        run = self.run_manager.resolve_run(selector)
        record = self.controller.read_state(run)
        active = record.active_phase()

        if active is None:
            return DispatchResult(run=run, record=record, phase=self._last_phase(record))

        if rerun:
            if active.status == PhaseStatus.RUNNING:
                action = partial(self.controller.rerun_phase, run, active.phase)
            else:
                action = partial(self.controller.request_revision, run, active.phase)
            record = self._execute(run, active.phase, action)
            if record.mode == RunMode.QUICK and active.phase == Phase.SCAN:
                self._close_quick_run(run)
            return self._present(run, active.phase)

        return DispatchResult(
            run=run,
            record=record,
            phase=active.phase,
            artifact=self._load_artifact(run, active.phase),
        )

    def quick(self) -> DispatchResult:
        """Run phase 1 only, skip the rest and close the run."""
        run = self._create_run(RunMode.QUICK)
        self._execute(run, Phase.SCAN, lambda: self.controller.start_phase(run, Phase.SCAN))
        self._close_quick_run(run)
        return self._present(run, Phase.SCAN)

    def approve(self, selector: str = LATEST, advance: bool = True) -> DispatchResult:
        """Approve the phase awaiting approval, then start the next one.

        Args:
            selector: Run id or ``latest``
            advance: Start the following phase after approving
        """
        run = self.run_manager.resolve_run(selector)
        phase = self._awaiting_phase(run, "approve")

        record = self.controller.approve_phase(run, phase)
        self._log_decision(run, phase, "approve")
        if phase == Phase.VALIDATE:
            self._log_completed(record)

        if advance and phase < Phase.VALIDATE and not record.is_terminal():
            next_phase = Phase(phase + 1)
            self._execute(
                run, next_phase, lambda: self.controller.start_phase(run, next_phase)
            )
            return self._present(run, next_phase)

        return DispatchResult(run=run, record=record, phase=phase)

    def revise(self, feedback: str, selector: str = LATEST) -> DispatchResult:
        """Re-run the phase awaiting approval with operator feedback."""
        run = self.run_manager.resolve_run(selector)
        phase = self._awaiting_phase(run, "revise")

        self._execute(
            run, phase, lambda: self.controller.request_revision(run, phase, feedback), feedback
        )
        self._log_decision(run, phase, "revise", feedback)
        return self._present(run, phase)

    def status(self, selector: str = LATEST) -> DispatchResult:
        """Describe a run without changing it."""
        run = self.run_manager.resolve_run(selector)
        record = self.controller.read_state(run)
        active = record.active_phase()
        phase = active.phase if active else self._last_phase(record)
        return DispatchResult(run=run, record=record, phase=phase)

    def _execute(
        self,
        run: Run,
        phase: Phase,
        action: Callable[[], StateRecord],
        feedback: Optional[str] = None,
    ) -> StateRecord:
        """Run a controller call that invokes the executor, logging failures."""
        if self.activity_logger:
            self.activity_logger.log_executor_request(run.run_id, phase, feedback)
        try:
            return action()
        except PhaseExecutionError as e:
            if self.activity_logger:
                self.activity_logger.log_error(run.run_id, str(e), phase=phase)
            raise

    def _close_quick_run(self, run: Run) -> StateRecord:
        """Skip the phases a quick run leaves out and complete the run.

        Called after every successful Scan of a quick run, so a Scan that
        failed or was interrupted and then retried still ends the run.
        """
        record = self.controller.read_state(run)
        for p in record.skippable:
            if record.status_of(p) == PhaseStatus.PENDING:
                self.controller.skip_phase(run, p)
        record = self.controller.close_run(run)
        self._log_completed(record)
        return record

    def _create_run(self, mode: RunMode) -> Run:
        run = self.run_manager.create_run(mode=mode)
        if self.activity_logger:
            self.activity_logger.log_run_created(run.run_id, mode.value)
        return run

    def _awaiting_phase(self, run: Run, action: str) -> Phase:
        record = self.controller.read_state(run)
        active = record.active_phase()
        if active is None or active.status != PhaseStatus.AWAITING_APPROVAL:
            raise InvalidTransitionError(
                f"Nothing to {action}: no phase is awaiting approval",
                run_id=run.run_id,
                phase=int(active.phase) if active else record.current_phase or None,
                status=active.status if active else None,
            )
        return active.phase

    def _present(self, run: Run, phase: Phase) -> DispatchResult:
        record = self.controller.read_state(run)
        result = DispatchResult(
            run=run,
            record=record,
            phase=phase,
            artifact=self._load_artifact(run, phase),
        )
        if result.is_checkpoint:
            self._log_checkpoint(result)
        return result

    def _load_artifact(self, run: Run, phase: Phase) -> Optional[Artifact]:
        artifact_store = self.controller.artifact_store
        if not artifact_store.exists(run, phase):
            return None
        return artifact_store.load(run, phase)

    def _last_phase(self, record: StateRecord) -> Optional[Phase]:
        return Phase(record.current_phase) if record.current_phase else None

    def _log_checkpoint(self, result: DispatchResult) -> None:
        if self.activity_logger and result.phase is not None:
            summary = result.artifact.summary if result.artifact else ""
            self.activity_logger.log_checkpoint(result.run.run_id, result.phase, summary)

    def _log_completed(self, record: StateRecord) -> None:
        if self.activity_logger and record.run_status == RunStatus.COMPLETED:
            self.activity_logger.log_run_completed(record.run_id)

    def _log_decision(
        self, run: Run, phase: Phase, decision: str, feedback: Optional[str] = None
    ) -> None:
        if self.activity_logger:
            self.activity_logger.log_decision(run.run_id, phase, decision, feedback)


def create_executor(config: PhaseGateConfig) -> PhaseExecutor:
    """Build the command executor described by the configuration."""
    prompts_dir = config.executor.prompts_dir
    return CommandPhaseExecutor(
        command=config.executor.command,
        working_dir=config.get_working_dir(),
        timeout=config.get_timeout_seconds(),
        prompt_loader=PromptLoader(prompts_dir) if prompts_dir else None,
    )


def build_dispatcher(
    config: PhaseGateConfig,
    executor: Optional[PhaseExecutor] = None,
    context: Optional[TargetContext] = None,
    read_only: bool = False,
) -> CLIDispatcher:
    """Wire stores, controller and logger from configuration.

    Args:
        config: Loaded configuration
        executor: Executor to use instead of the configured command
        context: Target context to use instead of resolving one
        read_only: Build no executor and no target context; the dispatcher
            can then only inspect runs and record decisions
    """
    config = config.resolve_env_vars()
    runs_dir = config.get_runs_dir()

    if read_only:
        executor = None
    elif executor is None:
        executor = create_executor(config)

    if context is None and not read_only:
        context = build_target_context(
            base_url=config.target.base_url,
            auth_url=config.target.auth_url,
            build_id=config.target.build_id,
        )

    state_store = StateStore()
    controller = PhaseController(
        state_store=state_store,
        artifact_store=ArtifactStore(),
        executor=executor,
        context=context,
    )

    activity_logger = None
    if config.logging.enabled:
        activity_logger = ActivityLogger(runs_dir, level=config.logging.level)
        controller.add_listener(activity_logger.on_transition)

    return CLIDispatcher(
        run_manager=RunManager(runs_dir, state_store=state_store),
        controller=controller,
        policy=config.orchestrator.explicit_phase_policy,
        activity_logger=activity_logger,
    )
