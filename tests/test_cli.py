"""Tests for phasegate CLI commands."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from phasegate.cli.main import cli, main
from phasegate.config.loader import load_config
from tests.mocks import MockPhaseExecutor


@pytest.fixture
def invoke(config_file: Path, isolated_config_env: Path, mock_executor: MockPhaseExecutor):
    """Invoke the CLI against the test configuration and mock executor."""
    runner = CliRunner()

    def _invoke(*args: str):
        with patch("phasegate.cli.common.create_executor", return_value=mock_executor):
            return runner.invoke(cli, ["--config", str(config_file), *args])

    return _invoke


def _run_dirs(tmp_path: Path) -> list:
    runs_dir = tmp_path / "runs"
    return sorted(p for p in runs_dir.iterdir() if p.is_dir())


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_cli_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "five-phase analysis runs" in result.output
        for command in ("phase", "resume", "quick", "approve", "revise", "status", "runs", "show", "init"):
            assert command in result.output

    def test_default_starts_full_run(self, invoke, tmp_path: Path, mock_executor):
        result = invoke()

        assert result.exit_code == 0, result.output
        assert "Checkpoint: Scan awaiting approval" in result.output
        assert "Scan finished" in result.output
        assert "phasegate approve" in result.output
        assert len(_run_dirs(tmp_path)) == 1
        assert mock_executor.phases_executed() == [1]

    def test_approve_advances(self, invoke, mock_executor):
        invoke()
        result = invoke("approve")

        assert result.exit_code == 0, result.output
        assert "Checkpoint: Critique awaiting approval" in result.output
        assert mock_executor.phases_executed() == [1, 2]

    def test_approve_stop(self, invoke, mock_executor):
        invoke()
        result = invoke("approve", "--stop")

        assert result.exit_code == 0, result.output
        assert "Approved phase 1 (Scan)" in result.output
        assert "phasegate phase 2" in result.output
        assert mock_executor.phases_executed() == [1]

    def test_approve_without_runs(self, invoke):
        result = invoke("approve")

        assert result.exit_code == 1
        assert "No runs found" in result.output

    def test_revise(self, invoke, mock_executor):
        invoke()
        result = invoke("revise", "cover the checkout flow")

        assert result.exit_code == 0, result.output
        assert "revision 2" in result.output
        assert mock_executor.requests[-1].feedback == "cover the checkout flow"

    def test_revise_rejects_empty_feedback(self, invoke):
        invoke()
        result = invoke("revise", "  ")

        assert result.exit_code == 2
        assert "feedback must not be empty" in result.output

    def test_resume_is_idempotent(self, invoke, tmp_path: Path, mock_executor):
        invoke()
        state_file = _run_dirs(tmp_path)[0] / "state.json"
        before = state_file.read_bytes()

        first = invoke("resume")
        second = invoke("resume")

        assert first.exit_code == 0 and second.exit_code == 0
        assert "Checkpoint: Scan awaiting approval" in second.output
        assert state_file.read_bytes() == before
        assert mock_executor.phases_executed() == [1]

    def test_phase_strict_reports_precedence(self, invoke):
        invoke()
        result = invoke("phase", "3", "--strict")

        assert result.exit_code == 1
        assert "requires phase Scan" in result.output
        assert "phase=3" in result.output

    def test_phase_trust(self, invoke, mock_executor):
        result = invoke("phase", "3")

        assert result.exit_code == 0, result.output
        assert "Checkpoint: Plan awaiting approval" in result.output
        assert mock_executor.phases_executed() == [3]

    def test_phase_out_of_range(self, invoke):
        result = invoke("phase", "7")
        assert result.exit_code == 2

    def test_quick(self, invoke, mock_executor):
        result = invoke("quick")

        assert result.exit_code == 0, result.output
        assert "Quick run finished; phases 2, 3, 4, 5 skipped." in result.output
        assert "phasegate approve" not in result.output
        assert mock_executor.phases_executed() == [1]

    def test_failure_exits_nonzero(self, invoke, mock_executor, tmp_path: Path):
        mock_executor.fail_phases.add(1)
        result = invoke()

        assert result.exit_code == 1
        assert "Retry with" in result.output
        assert "phasegate phase 1" in result.output

        state = json.loads((_run_dirs(tmp_path)[0] / "state.json").read_text(encoding="utf-8"))
        assert state["phases"][0]["status"] == "failed"

    def test_status_json(self, invoke):
        invoke()
        result = invoke("status", "--format", "json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["phases"][0]["status"] == "awaiting-approval"
        assert data["run_status"] == "active"

    def test_status_table(self, invoke):
        invoke()
        result = invoke("status")

        assert result.exit_code == 0, result.output
        assert "awaiting-approval" in result.output
        assert "Critique" in result.output

    def test_runs(self, invoke, tmp_path: Path):
        invoke()
        invoke("quick")
        result = invoke("runs")

        assert result.exit_code == 0, result.output
        for run_dir in _run_dirs(tmp_path):
            assert run_dir.name in result.output
        assert "quick" in result.output

    def test_runs_empty(self, invoke):
        result = invoke("runs")

        assert result.exit_code == 0
        assert "No runs yet" in result.output

    def test_show(self, invoke):
        invoke()
        result = invoke("show", "1")

        assert result.exit_code == 0, result.output
        assert "Scan report" in result.output

    def test_show_raw(self, invoke):
        invoke()
        result = invoke("show", "1", "--raw")

        assert result.exit_code == 0, result.output
        assert result.output.startswith("---\n")
        assert "name: scan" in result.output

    def test_show_missing_artifact(self, invoke):
        invoke()
        result = invoke("show", "2")

        assert result.exit_code == 1
        assert "No artifact" in result.output

    def test_inspection_survives_bad_session_state(
        self, invoke, monkeypatch: pytest.MonkeyPatch
    ):
        """status, runs and show never resolve the target context."""
        invoke()
        monkeypatch.setenv("AUTH_STATE", "not base64!")

        for args in (("status",), ("runs",), ("show", "1")):
            result = invoke(*args)
            assert result.exit_code == 0, result.output

        result = invoke("approve")
        assert result.exit_code == 1
        assert "AUTH_STATE" in result.output

    def test_verbose_prints_phase_table(self, invoke):
        invoke()
        result = invoke("-v", "resume")

        assert result.exit_code == 0, result.output
        assert "Attempts" in result.output


class TestInit:
    """Test the init command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_init_creates_config(self, isolated_config_env: Path):
        result = self.runner.invoke(cli, ["init"])

        assert result.exit_code == 0, result.output
        project_dir = isolated_config_env / ".phasegate"
        assert (project_dir / "config.yaml").exists()
        assert (project_dir / "runs").is_dir()
        assert "runs/" in (project_dir / ".gitignore").read_text(encoding="utf-8")

        data = yaml.safe_load((project_dir / "config.yaml").read_text(encoding="utf-8"))
        assert data["orchestrator"]["explicit_phase_policy"] == "trust"

        config = load_config()
        assert config.storage.runs_dir == ".phasegate/runs"

    def test_init_twice_requires_force(self, isolated_config_env: Path):
        self.runner.invoke(cli, ["init"])
        result = self.runner.invoke(cli, ["init"])

        assert result.exit_code == 0
        assert "already initialized" in result.output

        result = self.runner.invoke(cli, ["init", "--force"])
        assert result.exit_code == 0
        assert "Initialized phasegate" in result.output


class TestMain:
    """Test the console entry point."""

    def test_keyboard_interrupt_exits_130(self):
        with patch("phasegate.cli.main.cli", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 130
