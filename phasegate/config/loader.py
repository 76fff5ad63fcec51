"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from phasegate.config.models import PhaseGateConfig
from phasegate.core.exceptions import ConfigurationError

PROJECT_DIR_NAME = ".phasegate"
CONFIG_FILE_NAME = "config.yaml"


def load_config(
    config_path: Optional[Path] = None,
    global_config_path: Optional[Path] = None,
    project_config_path: Optional[Path] = None,
) -> PhaseGateConfig:
    """Load phasegate configuration from multiple sources.

    Configuration is loaded in the following order (later sources override earlier ones):
    1. Default configuration (built into the models)
    2. Global configuration (~/.config/phasegate/config.yaml)
    3. Project configuration (.phasegate/config.yaml, searched upwards)
    4. Explicit path given on the command line

    Args:
        config_path: Explicit configuration file
        global_config_path: Override for the global config location
        project_config_path: Override for the project config location

    Returns:
        Merged and validated configuration

    Raises:
        ConfigurationError: If configuration is invalid or cannot be loaded
    """
    config_data: Dict[str, Any] = {}

    for path in (
        global_config_path or _get_global_config_path(),
        project_config_path or _get_project_config_path(),
    ):
        if path and path.exists():
            config_data = _merge_config(config_data, _load_yaml_file(path))

    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        config_data = _merge_config(config_data, _load_yaml_file(config_path))

    try:
        return PhaseGateConfig(**config_data).resolve_env_vars()
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def save_config(config: PhaseGateConfig, config_path: Path) -> None:
    """Save configuration to a YAML file.

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_dict = config.model_dump(exclude_none=True, mode="json")

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                config_dict,
                f,
                default_flow_style=False,
                sort_keys=False,
                indent=2,
                allow_unicode=True,
            )

    except OSError as e:
        raise ConfigurationError(
            f"Failed to save configuration to {config_path}: {e}"
        ) from e


def get_config_paths() -> Dict[str, Optional[Path]]:
    """Get the global and project configuration file paths."""
    return {"global": _get_global_config_path(), "project": _get_project_config_path()}


def _get_global_config_path() -> Path:
    """Get the global configuration file path."""
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "phasegate" / CONFIG_FILE_NAME

    return Path.home() / ".config" / "phasegate" / CONFIG_FILE_NAME


def _get_project_config_path() -> Optional[Path]:
    """Look for a .phasegate directory in the current directory and its parents."""
    current = Path.cwd()

    for path in [current] + list(current.parents):
        project_dir = path / PROJECT_DIR_NAME
        if project_dir.is_dir():
            return project_dir / CONFIG_FILE_NAME

    return None


def _load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file.

    Raises:
        ConfigurationError: If file cannot be loaded or parsed
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {file_path}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file must contain a YAML object, got {type(data).__name__}"
        )

    return data


def _merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries recursively."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_config(result[key], value)
        else:
            result[key] = value

    return result
