"""Creation and resolution of runs."""

import os
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from .exceptions import RunNotFoundError, StateStoreError
from .phase_state import RunMode, StateRecord, utcnow
from .run import Run
from .state_store import StateStore

LATEST = "latest"
LATEST_POINTER_NAME = "LATEST"
RUN_ID_FORMAT = "%Y%m%d-%H%M%S-%f"
RUN_ID_PATTERN = re.compile(r"^\d{8}-\d{6}-\d{6}$")


class RunManager:
    """Creates run directories and resolves run selectors."""

    def __init__(
        self,
        runs_dir: Path,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the run manager.

        Args:
            runs_dir: Directory holding one sub-directory per run
            state_store: Store used to initialize state records
            clock: Source of creation timestamps (defaults to UTC now)
        """
        self.runs_dir = Path(runs_dir)
        self.state_store = state_store or StateStore()
        self._clock = clock or utcnow

    @property
    def latest_pointer(self) -> Path:
        return self.runs_dir / LATEST_POINTER_NAME

    def create_run(self, mode: RunMode = RunMode.FULL) -> Run:
        """Allocate a new run with every phase pending.

        Args:
            mode: Invocation mode creating the run

        Returns:
            The new Run

        Raises:
            StateStoreError: If the run directory or record cannot be written
        """
        try:
            self.runs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateStoreError(f"Failed to create runs directory {self.runs_dir}: {e}") from e

        run = self._allocate()
        self.state_store.write(run, StateRecord.new(run.run_id, mode=mode))
        self._update_latest_pointer(run.run_id)
        return run

    def resolve_run(self, selector: str = LATEST) -> Run:
        """Resolve ``latest`` or an explicit run id.

        Raises:
            RunNotFoundError: If no run matches
        """
        if selector == LATEST:
            run_ids = self.list_runs()
            if not run_ids:
                raise RunNotFoundError(f"No runs found in {self.runs_dir}")
            return self._run(run_ids[-1])

        if not RUN_ID_PATTERN.match(selector) or not (self.runs_dir / selector).is_dir():
            raise RunNotFoundError(f"Unknown run '{selector}'", run_id=selector)
        return self._run(selector)

    def latest_run(self) -> Optional[Run]:
        """Return the most recent run, or None when there are none."""
        run_ids = self.list_runs()
        return self._run(run_ids[-1]) if run_ids else None

    def list_runs(self) -> List[str]:
        """List run ids in creation order."""
        if not self.runs_dir.exists():
            return []

        return sorted(
            entry.name
            for entry in self.runs_dir.iterdir()
            if entry.is_dir() and RUN_ID_PATTERN.match(entry.name)
        )

    def _run(self, run_id: str) -> Run:
        return Run(run_id=run_id, path=self.runs_dir / run_id)

    def _allocate(self) -> Run:
        """Create a fresh run directory, stepping past ids already taken."""
        while True:
            run_id = self._clock().strftime(RUN_ID_FORMAT)
            latest = self.list_runs()
            if latest and run_id <= latest[-1]:
                # Keep ids strictly increasing even if the clock stalls
                run_id = _next_id(latest[-1])

            path = self.runs_dir / run_id
            try:
                path.mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                raise StateStoreError(f"Failed to create run directory {path}: {e}") from e
            return Run(run_id=run_id, path=path)

    def _update_latest_pointer(self, run_id: str) -> None:
        pointer = self.latest_pointer
        temp_file = pointer.with_suffix(".tmp")
        try:
            temp_file.write_text(run_id + "\n", encoding="utf-8")
            os.replace(temp_file, pointer)
        except OSError as e:
            raise StateStoreError(
                f"Failed to update latest pointer: {e}", run_id=run_id
            ) from e


def _next_id(run_id: str) -> str:
    """Return the id one microsecond after ``run_id``."""
    moment = datetime.strptime(run_id, RUN_ID_FORMAT)
    return (moment + timedelta(microseconds=1)).strftime(RUN_ID_FORMAT)
