"""State store for saving and loading run state records."""

import json
import os
import threading

from pydantic import ValidationError

from .exceptions import CorruptStateError, MissingStateError, StateStoreError
from .phase_state import StateRecord
from .run import Run


class StateStore:
    """
    Handles persistence of run state records to disk.

    Each run directory holds a single ``state.json``. Writes go to a
    temporary file in the same directory which is then renamed over the
    live record, so readers see either the old or the new record and never
    a partial one.
    """

    def __init__(self):
        self._lock = threading.Lock()

    def write(self, run: Run, record: StateRecord) -> None:
        """
        Save a run's state record atomically.

        Args:
            run: Run owning the record
            record: State record to save

        Raises:
            StateStoreError: If the write fails; the previous record is kept
        """
        with self._lock:
            state_file = run.state_file
            temp_file = state_file.with_suffix(".tmp")

            try:
                payload = self._serialize(record)
                run.path.mkdir(parents=True, exist_ok=True)

                with open(temp_file, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())

                # Rename to final location (atomic on POSIX and Windows)
                os.replace(temp_file, state_file)

            except Exception as e:
                if temp_file.exists():
                    temp_file.unlink()
                raise StateStoreError(
                    f"Failed to save state: {e}", run_id=run.run_id
                ) from e

    def read(self, run: Run) -> StateRecord:
        """
        Load a run's state record.

        Args:
            run: Run to read

        Returns:
            The persisted StateRecord

        Raises:
            MissingStateError: If the run has no state record
            CorruptStateError: If the record cannot be parsed
        """
        with self._lock:
            state_file = run.state_file

            if not state_file.exists():
                raise MissingStateError(
                    f"No state record at {state_file}", run_id=run.run_id
                )

            try:
                with open(state_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return StateRecord.model_validate(data)

            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
                raise CorruptStateError(
                    f"State record {state_file} is unreadable: {e}",
                    run_id=run.run_id,
                ) from e

    def read_bytes(self, run: Run) -> bytes:
        """Return the raw bytes of the live record."""
        if not run.state_file.exists():
            raise MissingStateError(
                f"No state record at {run.state_file}", run_id=run.run_id
            )
        return run.state_file.read_bytes()

    def exists(self, run: Run) -> bool:
        return run.state_file.exists()

    def _serialize(self, record: StateRecord) -> str:
        return json.dumps(record.model_dump(mode="json"), indent=2) + "\n"
