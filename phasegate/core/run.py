"""Run identity."""

from dataclasses import dataclass
from pathlib import Path

STATE_FILE_NAME = "state.json"
ARTIFACTS_DIR_NAME = "artifacts"
ACTIVITY_LOG_NAME = "activity.jsonl"


@dataclass(frozen=True)
class Run:
    """A run directory, named by its sortable creation id."""

    run_id: str
    path: Path

    @property
    def state_file(self) -> Path:
        return self.path / STATE_FILE_NAME

    @property
    def artifacts_dir(self) -> Path:
        return self.path / ARTIFACTS_DIR_NAME

    @property
    def activity_log(self) -> Path:
        return self.path / ACTIVITY_LOG_NAME

    def __str__(self) -> str:
        return self.run_id
