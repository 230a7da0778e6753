"""
Configuration utility functions
"""

from pathlib import Path
from typing import Any

import yaml

# Project root (two levels up from core/utils/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def resolve_config_path(filepath: str) -> Path:
    """
    Resolve a config path against the project root

    Relative paths are tried against the current working directory first,
    then against the project root, so services can be started from anywhere.
    """
    path = Path(filepath)
    if path.is_absolute() or path.exists():
        return path
    return PROJECT_ROOT / path


def load_yaml(filepath: str) -> dict[str, Any]:
    """
    Load YAML file and return as dictionary

    Args:
        filepath: Path to YAML file (relative or absolute)

    Returns:
        Dictionary with YAML data (empty dict for an empty file)

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is invalid

    Example:
        >>> config = load_yaml("config/providers/indicators.yaml")
        >>> print(config["settings"]["freshness_seconds"])
        3600
    """
    path = resolve_config_path(filepath)

    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {filepath}")

    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_yaml_safe(filepath: str) -> dict[str, Any]:
    """
    Load YAML file with fallback to empty dict if file doesn't exist or is invalid
    """
    try:
        return load_yaml(filepath)
    except (FileNotFoundError, yaml.YAMLError):
        return {}
