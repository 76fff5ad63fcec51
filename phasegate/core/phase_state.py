"""Phase and run state definitions and transitions."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

PHASE_COUNT = 5


class Phase(int, Enum):
    """The five fixed, ordered phases of a run."""

    SCAN = 1
    CRITIQUE = 2
    PLAN = 3
    EXECUTE = 4
    VALIDATE = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def slug(self) -> str:
        return self.name.lower()


class PhaseStatus(str, Enum):
    """Phase lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    AWAITING_APPROVAL = "awaiting-approval"
    APPROVED = "approved"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    """Overall run lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class RunMode(str, Enum):
    """Invocation mode a run was created by."""

    FULL = "full"
    PHASE = "phase"
    QUICK = "quick"


class Decision(str, Enum):
    """Operator decisions recorded in the decision log."""

    APPROVE = "approve"
    REVISE = "revise"
    SKIP = "skip"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhaseEntry(BaseModel):
    """Status of one phase inside a state record."""

    phase: Phase
    status: PhaseStatus = PhaseStatus.PENDING
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    attempts: int = 0
    # Feedback of the latest attempt, replayed if that attempt is interrupted
    feedback: Optional[str] = None


class DecisionRecord(BaseModel):
    """One entry of the decision log."""

    phase: Phase
    decision: Decision
    timestamp: datetime = Field(default_factory=utcnow)
    feedback: Optional[str] = None


class StateRecord(BaseModel):
    """Authoritative snapshot of a run's phase statuses and decisions."""

    run_id: str
    mode: RunMode = RunMode.FULL
    run_status: RunStatus = RunStatus.ACTIVE
    current_phase: int = 0
    phases: List[PhaseEntry] = Field(
        default_factory=lambda: [PhaseEntry(phase=p) for p in Phase]
    )
    skippable: List[Phase] = Field(default_factory=list)
    build_id: Optional[str] = None
    decisions: List[DecisionRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    error_message: Optional[str] = None

    @field_validator("phases")
    @classmethod
    def validate_phases(cls, v: List[PhaseEntry]) -> List[PhaseEntry]:
        """Require exactly one entry per phase, in order."""
        if [entry.phase for entry in v] != list(Phase):
            raise ValueError(f"phases must list each of the {PHASE_COUNT} phases in order")
        return v

    @classmethod
    def new(cls, run_id: str, mode: RunMode = RunMode.FULL) -> "StateRecord":
        """Create a record with every phase pending."""
        skippable = [p for p in Phase if p != Phase.SCAN] if mode == RunMode.QUICK else []
        return cls(run_id=run_id, mode=mode, skippable=skippable)

    def entry(self, phase: int) -> PhaseEntry:
        return self.phases[Phase(phase) - 1]

    def status_of(self, phase: int) -> PhaseStatus:
        return self.entry(phase).status

    def active_phase(self) -> Optional[PhaseEntry]:
        """Return the phase that is running or awaiting approval, if any."""
        for entry in self.phases:
            if entry.status in ACTIVE_STATUSES:
                return entry
        return None

    def is_terminal(self) -> bool:
        return self.run_status != RunStatus.ACTIVE

    def set_status(self, phase: int, status: PhaseStatus) -> PhaseStatus:
        """Move a phase to a new status and stamp its timestamps.

        Returns the previous status. Validity is checked by the caller.
        """
        now = utcnow()
        entry = self.entry(phase)
        previous = entry.status

        entry.status = status
        if status == PhaseStatus.RUNNING:
            entry.started_at = now
            entry.ended_at = None
            entry.attempts += 1
        elif status in (PhaseStatus.APPROVED, PhaseStatus.FAILED, PhaseStatus.SKIPPED):
            entry.ended_at = now

        if status != PhaseStatus.SKIPPED:
            self.current_phase = int(phase)
        self.updated_at = now
        return previous

    def add_decision(
        self, phase: int, decision: Decision, feedback: Optional[str] = None
    ) -> DecisionRecord:
        record = DecisionRecord(phase=Phase(phase), decision=decision, feedback=feedback)
        self.decisions.append(record)
        return record

    def last_decision(self, phase: int, decision: Decision) -> Optional[DecisionRecord]:
        for record in reversed(self.decisions):
            if record.phase == phase and record.decision == decision:
                return record
        return None


ACTIVE_STATUSES = (PhaseStatus.RUNNING, PhaseStatus.AWAITING_APPROVAL)

# Statuses that satisfy the predecessor check for the next phase
SETTLED_STATUSES = (PhaseStatus.APPROVED, PhaseStatus.SKIPPED)

# Valid phase transitions
VALID_TRANSITIONS: Dict[PhaseStatus, List[PhaseStatus]] = {
    PhaseStatus.PENDING: [PhaseStatus.RUNNING, PhaseStatus.SKIPPED],
    PhaseStatus.RUNNING: [
        PhaseStatus.AWAITING_APPROVAL,
        PhaseStatus.FAILED,
        PhaseStatus.RUNNING,  # Re-run after an interrupted process
    ],
    PhaseStatus.AWAITING_APPROVAL: [
        PhaseStatus.APPROVED,
        PhaseStatus.RUNNING,  # Revision requested
    ],
    PhaseStatus.FAILED: [PhaseStatus.RUNNING],
    PhaseStatus.APPROVED: [],
    PhaseStatus.SKIPPED: [],
}


def is_valid_transition(from_status: PhaseStatus, to_status: PhaseStatus) -> bool:
    """Check if a phase transition is valid."""
    return to_status in VALID_TRANSITIONS.get(from_status, [])


def get_valid_next_statuses(current: PhaseStatus) -> List[PhaseStatus]:
    """Get list of valid next statuses for a given status."""
    return VALID_TRANSITIONS.get(current, [])


def is_terminal_status(status: PhaseStatus) -> bool:
    """Check if a phase status allows no further transitions."""
    return len(VALID_TRANSITIONS.get(status, [])) == 0


def parse_phase(value: int) -> Phase:
    """Convert a 1-based index into a Phase, rejecting out of range values."""
    try:
        return Phase(int(value))
    except (TypeError, ValueError) as e:
        raise ValueError(f"phase must be between 1 and {PHASE_COUNT}, got {value!r}") from e
