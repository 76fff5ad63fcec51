"""Activity logging for phasegate runs."""

import json
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from phasegate.core.phase_state import Phase, PhaseStatus
from phasegate.core.run import ACTIVITY_LOG_NAME


class EventType(str, Enum):
    """Types of events that can be logged."""

    RUN_CREATED = "run_created"
    RUN_COMPLETED = "run_completed"
    PHASE_TRANSITION = "phase_transition"
    CHECKPOINT = "checkpoint"
    DECISION = "decision"
    EXECUTOR_REQUEST = "executor_request"
    ERROR = "error"
    INFO = "info"
    DEBUG = "debug"


# Events only written when the configured level is DEBUG
DEBUG_EVENTS = {EventType.EXECUTOR_REQUEST, EventType.DEBUG}


class ActivityEvent(BaseModel):
    """Activity event model."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: EventType = Field(..., description="Type of event")
    run_id: str = Field(..., description="Run identifier")
    phase: Optional[int] = Field(None, description="Phase index")
    message: str = Field(..., description="Event message")
    from_status: Optional[PhaseStatus] = Field(None, description="Status before a transition")
    to_status: Optional[PhaseStatus] = Field(None, description="Status after a transition")
    data: Dict[str, Any] = Field(default_factory=dict, description="Additional event data")


class ActivityLogger:
    """Thread-safe JSON-lines activity logger, one file per run."""

    def __init__(self, runs_dir: Path, level: str = "INFO"):
        """Initialize activity logger.

        Args:
            runs_dir: Directory holding the run directories
            level: ``DEBUG`` also records executor requests
        """
        self.runs_dir = Path(runs_dir)
        self.level = level.upper()
        self._lock = threading.Lock()

    def log_file(self, run_id: str) -> Path:
        return self.runs_dir / run_id / ACTIVITY_LOG_NAME

    def log_event(
        self,
        run_id: str,
        event_type: EventType,
        message: str,
        phase: Optional[int] = None,
        **data: Any,
    ) -> None:
        """Log a general activity event.

        Args:
            run_id: Run the event belongs to
            event_type: Type of event
            message: Event message
            phase: Optional phase index
            **data: Additional event data
        """
        if event_type in DEBUG_EVENTS and self.level != "DEBUG":
            return

        event = ActivityEvent(
            event_type=event_type,
            run_id=run_id,
            phase=int(phase) if phase is not None else None,
            message=message,
            from_status=data.pop("from_status", None),
            to_status=data.pop("to_status", None),
            data=data,
        )
        self._write_event(event)

    def on_transition(
        self,
        run_id: str,
        phase: Phase,
        from_status: PhaseStatus,
        to_status: PhaseStatus,
    ) -> None:
        """Transition listener for the phase controller."""
        self.log_event(
            run_id,
            EventType.PHASE_TRANSITION,
            f"Phase {phase.label}: {from_status.value} -> {to_status.value}",
            phase=phase,
            from_status=from_status,
            to_status=to_status,
        )

    def log_run_created(self, run_id: str, mode: str) -> None:
        self.log_event(run_id, EventType.RUN_CREATED, f"Run created ({mode})", mode=mode)

    def log_checkpoint(self, run_id: str, phase: Phase, summary: str) -> None:
        self.log_event(
            run_id,
            EventType.CHECKPOINT,
            f"Phase {phase.label} awaiting approval",
            phase=phase,
            summary=summary,
        )

    def log_decision(
        self, run_id: str, phase: Phase, decision: str, feedback: Optional[str] = None
    ) -> None:
        self.log_event(
            run_id,
            EventType.DECISION,
            f"Phase {phase.label}: {decision}",
            phase=phase,
            decision=decision,
            feedback=feedback,
        )

    def log_run_completed(self, run_id: str) -> None:
        self.log_event(run_id, EventType.RUN_COMPLETED, "Run completed")

    def log_executor_request(
        self, run_id: str, phase: Phase, feedback: Optional[str] = None
    ) -> None:
        self.log_event(
            run_id,
            EventType.EXECUTOR_REQUEST,
            f"Executing phase {phase.label}",
            phase=phase,
            feedback=feedback,
        )

    def log_error(self, run_id: str, error: str, phase: Optional[int] = None) -> None:
        self.log_event(run_id, EventType.ERROR, error, phase=phase)

    def get_events(self, run_id: str, limit: Optional[int] = None) -> List[ActivityEvent]:
        """Read events for a run, oldest first.

        Args:
            run_id: Run identifier
            limit: Only return the last ``limit`` events
        """
        log_file = self.log_file(run_id)
        if not log_file.exists():
            return []

        events = []
        with open(log_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(ActivityEvent.model_validate_json(line))

        if limit is not None:
            events = events[-limit:]
        return events

    def _write_event(self, event: ActivityEvent) -> None:
        """Append an event to the run's log in a thread-safe manner."""
        log_file = self.log_file(event.run_id)
        with self._lock:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                json.dump(event.model_dump(mode="json"), f, separators=(",", ":"))
                f.write("\n")
