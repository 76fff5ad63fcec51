"""Storage and retrieval of phase artifacts.

Each phase that produces output gets one markdown file under
``<run>/artifacts/`` named ``<index>-<phase>.md``. The summary and
bookkeeping fields live in a YAML front matter block so the file stays
readable for the operator reviewing the checkpoint.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ArtifactStoreError, MissingArtifactError
from .phase_state import Phase, utcnow
from .run import Run

FRONT_MATTER_DELIMITER = "---"


class Artifact(BaseModel):
    """Output of one phase execution."""

    run_id: str = Field(description="Run identifier")
    phase: Phase = Field(description="Phase that produced the artifact")
    content: str = Field(description="Artifact body")
    summary: str = Field(default="", description="Short human-readable summary")
    revision: int = Field(default=1, description="1 for the first run, +1 per revision")
    created_at: datetime = Field(default_factory=utcnow)


class ArtifactStore:
    """Manages storage and retrieval of phase artifacts."""

    def artifact_file(self, run: Run, phase: int) -> Path:
        """Get the file path for a phase's artifact."""
        p = Phase(phase)
        return run.artifacts_dir / f"{int(p)}-{p.slug}.md"

    def save(self, run: Run, phase: int, content: str, summary: str) -> Artifact:
        """Save an artifact, superseding any earlier one for the same phase.

        Args:
            run: Run the artifact belongs to
            phase: Phase index
            content: Artifact body
            summary: Short summary shown at the checkpoint

        Returns:
            The saved Artifact
        """
        revision = 1
        if self.exists(run, phase):
            revision = self.load(run, phase).revision + 1

        artifact = Artifact(
            run_id=run.run_id,
            phase=Phase(phase),
            content=content,
            summary=summary,
            revision=revision,
        )

        artifact_file = self.artifact_file(run, phase)
        temp_file = artifact_file.with_suffix(".tmp")
        try:
            artifact_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8", newline="") as f:
                f.write(self._render(artifact))
            os.replace(temp_file, artifact_file)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise ArtifactStoreError(
                f"Failed to save artifact: {e}", run_id=run.run_id, phase=int(phase)
            ) from e

        return artifact

    def load(self, run: Run, phase: int) -> Artifact:
        """Load a phase's artifact.

        Raises:
            MissingArtifactError: If the phase has not produced output yet
            ArtifactStoreError: If the file cannot be parsed
        """
        artifact_file = self.artifact_file(run, phase)

        if not artifact_file.exists():
            raise MissingArtifactError(
                f"No artifact for phase {Phase(phase).label}",
                run_id=run.run_id,
                phase=int(phase),
            )

        try:
            text = artifact_file.read_bytes().decode("utf-8")
            header, content = self._split_front_matter(text)
            return Artifact(run_id=run.run_id, content=content, **header)
        except (OSError, yaml.YAMLError, ValidationError, ValueError) as e:
            raise ArtifactStoreError(
                f"Artifact {artifact_file} is unreadable: {e}",
                run_id=run.run_id,
                phase=int(phase),
            ) from e

    def exists(self, run: Run, phase: int) -> bool:
        return self.artifact_file(run, phase).exists()

    def list_phases(self, run: Run) -> List[Phase]:
        """List phases that have an artifact, in phase order."""
        return [p for p in Phase if self.exists(run, p)]

    def load_all(self, run: Run, before: Optional[int] = None) -> Dict[int, str]:
        """Map phase index to artifact content.

        Args:
            run: Run to read
            before: Only include phases with a lower index

        Returns:
            Dictionary of phase index to content
        """
        contents: Dict[int, str] = {}
        for p in self.list_phases(run):
            if before is not None and p >= before:
                continue
            contents[int(p)] = self.load(run, p).content
        return contents

    def _render(self, artifact: Artifact) -> str:
        header = {
            "phase": int(artifact.phase),
            "name": artifact.phase.slug,
            "summary": artifact.summary,
            "revision": artifact.revision,
            "created_at": artifact.created_at.isoformat(),
        }
        front_matter = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
        return f"{FRONT_MATTER_DELIMITER}\n{front_matter}{FRONT_MATTER_DELIMITER}\n{artifact.content}"

    def _split_front_matter(self, text: str) -> tuple[dict, str]:
        opening = f"{FRONT_MATTER_DELIMITER}\n"
        closing = f"\n{FRONT_MATTER_DELIMITER}\n"

        if not text.startswith(opening):
            raise ValueError("missing front matter")
        end = text.find(closing, len(opening) - 1)
        if end == -1:
            raise ValueError("unterminated front matter")

        header = yaml.safe_load(text[len(opening):end]) or {}
        if not isinstance(header, dict):
            raise ValueError("front matter must be a mapping")
        header.pop("name", None)
        return header, text[end + len(closing):]
