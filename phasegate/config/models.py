"""Configuration models for phasegate."""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

DURATION_PATTERN = re.compile(r"^(\d+)([hms])$")
DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}


def parse_duration(value: str) -> int:
    """Convert a duration like '30m', '2h' or '300s' to seconds."""
    match = DURATION_PATTERN.match(value)
    if not match:
        raise ValueError("Duration must be in format like '30m', '2h', or '300s'")
    return int(match.group(1)) * DURATION_UNITS[match.group(2)]


class ExplicitPhasePolicy(str, Enum):
    """How ``phase N`` treats phases before N."""

    TRUST = "trust"
    ENFORCE = "enforce"


class StorageConfig(BaseModel):
    """Where runs are stored."""

    runs_dir: str = Field(default=".phasegate/runs", description="Run directory root")


class ExecutorConfig(BaseModel):
    """Phase executor configuration."""

    command: str = Field(
        default="claude --dangerously-skip-permissions",
        description="Agent CLI invoked for each phase",
    )
    working_dir: str = Field(default=".", description="Project under analysis")
    timeout: str = Field(default="30m", description="Timeout for one phase")
    prompts_dir: Optional[str] = Field(
        default=None, description="Custom prompt templates directory"
    )

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: str) -> str:
        """Validate timeout format."""
        parse_duration(v)
        return v

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("command must not be empty")
        return v


class OrchestratorConfig(BaseModel):
    """Phase ordering policy."""

    explicit_phase_policy: ExplicitPhasePolicy = Field(
        default=ExplicitPhasePolicy.TRUST,
        description="'trust' starts phase N as asked; 'enforce' requires 1..N-1 settled",
    )


class TargetConfig(BaseModel):
    """System under test, exported to executors."""

    base_url: str = Field(default="${BASE_URL:}", description="Application base URL")
    auth_url: str = Field(default="${AUTH_URL:}", description="Authentication base URL")
    build_id: Optional[str] = Field(default=None, description="Fixed build identifier")


class LoggingConfig(BaseModel):
    """Activity log configuration."""

    enabled: bool = Field(default=True, description="Write activity.jsonl per run")
    level: str = Field(default="INFO", description="Log level")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARN", "ERROR"]
        if v.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {', '.join(valid_levels)}")
        return v.upper()


class PhaseGateConfig(BaseModel):
    """Main phasegate configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    target: TargetConfig = Field(default_factory=TargetConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resolve_env_vars(self) -> "PhaseGateConfig":
        """Resolve environment variables in configuration values."""
        config_dict = self.model_dump(mode="json")
        resolved_dict = _resolve_env_vars_recursive(config_dict)
        return PhaseGateConfig(**resolved_dict)

    def get_runs_dir(self) -> Path:
        return Path(self.storage.runs_dir).expanduser().resolve()

    def get_working_dir(self) -> Path:
        return Path(self.executor.working_dir).expanduser().resolve()

    def get_timeout_seconds(self) -> int:
        return parse_duration(self.executor.timeout)


def _resolve_env_vars_recursive(obj: Any) -> Any:
    """Recursively resolve environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _resolve_env_vars_recursive(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_env_vars_recursive(item) for item in obj]
    elif isinstance(obj, str):
        return _resolve_env_var_string(obj)
    else:
        return obj


def _resolve_env_var_string(value: str) -> str:
    """Resolve ${VAR_NAME} or ${VAR_NAME:default_value} in a string."""
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replace_var(match):
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.getenv(var_name, default_value)

    return re.sub(pattern, replace_var, value)
