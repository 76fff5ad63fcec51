"""Prompt template loader with variable substitution.

Each phase has a markdown template in ``phasegate/prompts/`` named after
the phase (``scan.md``, ``critique.md``, ...). Placeholders use
``{variable}`` syntax; ``*_section`` placeholders are optional blocks that
disappear when their data is empty.
"""

import re
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .exceptions import PromptLoadError, PromptRenderError
from .phase_state import Phase

PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


class PromptTemplate(BaseModel):
    """Represents a loaded prompt template."""

    name: str = Field(description="Template name (e.g., 'scan', 'plan')")
    content: str = Field(description="Raw template content")
    required_variables: list[str] = Field(default_factory=list)
    optional_variables: list[str] = Field(default_factory=list)

    def render(self, variables: Dict[str, Any]) -> str:
        """Render the template with provided variables.

        Raises:
            PromptRenderError: If required variables are missing
        """
        missing = set(self.required_variables) - set(variables.keys())
        if missing:
            raise PromptRenderError(
                f"Missing required variables for template '{self.name}': {sorted(missing)}"
            )

        values = dict(variables)
        for opt_var in self.optional_variables:
            data_var = opt_var[: -len("_section")]
            data = variables.get(data_var)
            values[opt_var] = _format_section(data_var, data) if data else ""

        def replace_var(match):
            value = values.get(match.group(1))
            return "" if value is None else str(value)

        return PLACEHOLDER.sub(replace_var, self.content)


def _format_section(section_name: str, value: Any) -> str:
    """Format optional sections based on their type."""
    if section_name == "prior_artifacts" and isinstance(value, dict):
        blocks = []
        for index in sorted(value):
            label = Phase(index).label
            blocks.append(f"### Phase {index}: {label}\n\n{value[index].strip()}\n")
        return "\n## Earlier Phase Output\n\n" + "\n".join(blocks)

    if section_name == "feedback":
        return (
            "\n## Revision Requested\n\n"
            "The operator reviewed your previous output and asked for changes:\n\n"
            f"{value}\n"
        )

    return f"\n## {section_name.replace('_', ' ').title()}\n\n{value}\n"


class PromptLoader:
    """Loads and caches prompt templates."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Initialize the prompt loader.

        Args:
            prompts_dir: Directory containing prompt templates.
                        Defaults to the templates shipped with the package.
        """
        if prompts_dir is None:
            prompts_dir = Path(__file__).parent.parent / "prompts"

        self.prompts_dir = Path(prompts_dir)
        if not self.prompts_dir.is_dir():
            raise PromptLoadError(f"Prompts directory not found: {self.prompts_dir}")

        self._templates: Dict[str, PromptTemplate] = {}

    def load_template(self, name: str) -> PromptTemplate:
        """Load a prompt template by name.

        Raises:
            PromptLoadError: If template file not found or unreadable
        """
        if name in self._templates:
            return self._templates[name]

        template_file = self.prompts_dir / f"{name}.md"
        if not template_file.exists():
            raise PromptLoadError(f"Template file not found: {template_file}")

        try:
            content = template_file.read_text(encoding="utf-8")
        except OSError as e:
            raise PromptLoadError(f"Failed to read template '{name}': {e}") from e

        variables = set(PLACEHOLDER.findall(content))
        template = PromptTemplate(
            name=name,
            content=content,
            required_variables=sorted(v for v in variables if not v.endswith("_section")),
            optional_variables=sorted(v for v in variables if v.endswith("_section")),
        )

        self._templates[name] = template
        return template

    def render_template(self, name: str, variables: Dict[str, Any]) -> str:
        """Load and render a template in one step."""
        return self.load_template(name).render(variables)

    def list_templates(self) -> list[str]:
        """List available template names."""
        return sorted(f.stem for f in self.prompts_dir.glob("*.md") if f.is_file())


def load_prompt(name: str, prompts_dir: Optional[Path] = None, **variables) -> str:
    """Load and render a prompt template in one step.

    Example:
        >>> prompt = load_prompt(
        ...     "scan",
        ...     run_id="20260101-120000-000000",
        ...     target_dir="/src/e2e",
        ...     build_id="42",
        ... )
    """
    loader = PromptLoader(prompts_dir=prompts_dir)
    return loader.render_template(name, variables)
