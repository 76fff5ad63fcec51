"""Tests for state record persistence."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from phasegate.core import (
    CorruptStateError,
    MissingStateError,
    Phase,
    PhaseStatus,
    Run,
    StateRecord,
    StateStore,
    StateStoreError,
)

RUN_ID = "20260101-120000-000000"


@pytest.fixture
def bare_run(tmp_path: Path) -> Run:
    return Run(run_id=RUN_ID, path=tmp_path / RUN_ID)


class TestStateStore:
    """Test StateStore read and write."""

    def test_write_and_read(self, state_store: StateStore, bare_run: Run):
        record = StateRecord.new(RUN_ID)
        record.set_status(Phase.SCAN, PhaseStatus.RUNNING)

        state_store.write(bare_run, record)
        loaded = state_store.read(bare_run)

        assert loaded == record
        assert state_store.exists(bare_run)

    def test_record_is_readable_json(self, state_store: StateStore, bare_run: Run):
        state_store.write(bare_run, StateRecord.new(RUN_ID))

        data = json.loads(bare_run.state_file.read_text(encoding="utf-8"))
        assert data["run_id"] == RUN_ID
        assert data["run_status"] == "active"
        assert [p["status"] for p in data["phases"]] == ["pending"] * 5

    def test_read_missing(self, state_store: StateStore, bare_run: Run):
        with pytest.raises(MissingStateError) as exc_info:
            state_store.read(bare_run)

        assert exc_info.value.run_id == RUN_ID
        assert RUN_ID in str(exc_info.value)

    def test_read_bytes_missing(self, state_store: StateStore, bare_run: Run):
        with pytest.raises(MissingStateError):
            state_store.read_bytes(bare_run)

    def test_read_invalid_json(self, state_store: StateStore, bare_run: Run):
        bare_run.path.mkdir(parents=True)
        bare_run.state_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(CorruptStateError) as exc_info:
            state_store.read(bare_run)
        assert exc_info.value.run_id == RUN_ID

    def test_read_schema_mismatch(self, state_store: StateStore, bare_run: Run):
        bare_run.path.mkdir(parents=True)
        bare_run.state_file.write_text(
            json.dumps({"run_id": RUN_ID, "phases": [{"phase": 1, "status": "bogus"}]}),
            encoding="utf-8",
        )

        with pytest.raises(CorruptStateError):
            state_store.read(bare_run)

    def test_corrupt_error_is_state_store_error(self):
        assert issubclass(CorruptStateError, StateStoreError)
        assert issubclass(MissingStateError, StateStoreError)


class TestAtomicWrite:
    """A failed write must leave the previous record in place."""

    def test_failed_replace_keeps_previous_record(self, state_store: StateStore, bare_run: Run):
        state_store.write(bare_run, StateRecord.new(RUN_ID))
        before = state_store.read_bytes(bare_run)

        record = state_store.read(bare_run)
        record.set_status(Phase.SCAN, PhaseStatus.RUNNING)

        with patch("phasegate.core.state_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StateStoreError, match="disk full"):
                state_store.write(bare_run, record)

        assert state_store.read_bytes(bare_run) == before
        assert not bare_run.state_file.with_suffix(".tmp").exists()

    def test_failed_first_write_leaves_no_record(self, state_store: StateStore, bare_run: Run):
        with patch("phasegate.core.state_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StateStoreError):
                state_store.write(bare_run, StateRecord.new(RUN_ID))

        assert not state_store.exists(bare_run)
        assert list(bare_run.path.iterdir()) == []

    def test_overwrite_replaces_whole_record(self, state_store: StateStore, bare_run: Run):
        record = StateRecord.new(RUN_ID)
        record.error_message = "x" * 5000
        state_store.write(bare_run, record)

        record.error_message = None
        state_store.write(bare_run, record)

        assert state_store.read(bare_run).error_message is None
        assert "xxxx" not in bare_run.state_file.read_text(encoding="utf-8")
