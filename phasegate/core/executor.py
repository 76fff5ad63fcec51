"""Phase executors.

The orchestrator treats a phase as one synchronous call: it hands a
``PhaseRequest`` to an executor and gets a ``PhaseResult`` back, or an
exception. ``CommandPhaseExecutor`` runs an agent CLI (Claude Code by
default) with the phase's prompt template and captures its output.
"""

import os
import shlex
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from .exceptions import ExecutorError, ExecutorTimeoutError
from .phase_state import Phase
from .prompt_loader import PromptLoader

if TYPE_CHECKING:
    from phasegate.bootstrap import TargetContext

SUMMARY_PREFIX = "summary:"
MAX_SUMMARY_LENGTH = 200


@dataclass
class PhaseRequest:
    """Inputs for one phase execution."""

    run_id: str
    phase: Phase
    prior_artifacts: Dict[int, str] = field(default_factory=dict)
    feedback: Optional[str] = None
    context: Optional["TargetContext"] = None


@dataclass
class PhaseResult:
    """Output of one phase execution."""

    content: str
    summary: str


class PhaseExecutor(ABC):
    """Performs the work of a single phase."""

    @abstractmethod
    def execute(self, request: PhaseRequest) -> PhaseResult:
        """Run the phase and return its consolidated output.

        Any exception is recorded by the controller as a phase failure.
        """


def extract_summary(content: str) -> str:
    """Pull the summary line out of executor output.

    Uses the last line starting with ``Summary:``; falls back to the first
    non-empty line. Long summaries are truncated.
    """
    lines = [line.strip() for line in content.splitlines() if line.strip()]

    summary = ""
    for line in reversed(lines):
        bare = line.lstrip("#*-> ").rstrip("*")
        if bare.lower().startswith(SUMMARY_PREFIX):
            summary = bare[len(SUMMARY_PREFIX):].strip(" *")
            break
    else:
        if lines:
            summary = lines[0].lstrip("# ")

    if len(summary) > MAX_SUMMARY_LENGTH:
        summary = summary[: MAX_SUMMARY_LENGTH - 3].rstrip() + "..."
    return summary


class CommandPhaseExecutor(PhaseExecutor):
    """Execute an agent CLI with the phase's prompt."""

    def __init__(
        self,
        command: str = "claude --dangerously-skip-permissions",
        working_dir: Optional[Path] = None,
        timeout: int = 1800,
        prompt_loader: Optional[PromptLoader] = None,
    ):
        """Initialize the command executor.

        Args:
            command: Agent CLI command; the prompt is passed with ``-p``
            working_dir: Directory of the project under analysis
            timeout: Timeout in seconds for one phase
            prompt_loader: Loader for phase templates (package templates if None)
        """
        self.command = command
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.timeout = timeout
        self.prompt_loader = prompt_loader or PromptLoader()

    def build_prompt(self, request: PhaseRequest) -> str:
        """Render the template for the requested phase."""
        context = request.context
        return self.prompt_loader.render_template(
            request.phase.slug,
            {
                "run_id": request.run_id,
                "target_dir": str(self.working_dir),
                "base_url": context.base_url if context else "",
                "build_id": context.build_id if context else "",
                "prior_artifacts": request.prior_artifacts,
                "feedback": request.feedback,
            },
        )

    def execute(self, request: PhaseRequest) -> PhaseResult:
        """Run the agent CLI for one phase.

        Raises:
            ExecutorTimeoutError: If the command exceeds the timeout
            ExecutorError: If the command fails or prints nothing
        """
        prompt = self.build_prompt(request)
        cmd = shlex.split(self.command) + ["-p", prompt]

        env = dict(os.environ)
        if request.context is not None:
            env.update(request.context.to_env())

        start_time = time.time()
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(self.working_dir),
                env=env,
                text=True,
            )
        except FileNotFoundError as e:
            raise ExecutorError(
                f"Executor command not found. Is it installed? Command: {self.command}"
            ) from e

        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            raise ExecutorTimeoutError(
                f"Phase {request.phase.label} timed out after {self.timeout}s"
            ) from e

        duration = time.time() - start_time

        if process.returncode != 0:
            message = f"Executor exited with code {process.returncode} after {duration:.1f}s"
            if stderr:
                message += f": {stderr[:500]}"
            raise ExecutorError(message)

        if not stdout.strip():
            raise ExecutorError(f"Executor produced no output for phase {request.phase.label}")

        return PhaseResult(content=stdout, summary=extract_summary(stdout))
