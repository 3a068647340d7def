"""Configuration loading: YAML file, command-line overrides, validation."""

from pathlib import Path
from typing import Any, Iterable

import pydantic_yaml

from .schema import OrthoscopeConfig

# Override values clearing an optional setting, e.g. query.lookup_timeout_seconds=null
_NULL_VALUES = ("null", "none", "~")


def load_config(config_path: Path | str) -> OrthoscopeConfig:
    """
    Load and validate orthoscope configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated OrthoscopeConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return pydantic_yaml.parse_yaml_file_as(OrthoscopeConfig, config_path)


def parse_overrides(assignments: Iterable[str]) -> dict[str, Any]:
    """
    Parse ``KEY=VALUE`` assignments given with ``--set``.

    Keys are dotted paths into the configuration, e.g.
    ``query.max_workers=8``. Values are kept as strings and coerced by
    the schema, except null values which clear an optional setting.

    Raises:
        ValueError: If an assignment has no ``=`` or an empty key
    """
    overrides = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {assignment!r}")
        value = value.strip()
        overrides[key] = None if value.lower() in _NULL_VALUES else value
    return overrides


def _apply_override(config_dict: dict, key: str, value: Any) -> None:
    *sections, name = key.split(".")
    target = config_dict
    for section in sections:
        if not isinstance(target.get(section), dict):
            raise KeyError(f"Unknown config section {section!r} in {key!r}")
        target = target[section]
    if name not in target:
        raise KeyError(f"Unknown config key {key!r}")

    # a mapping updates the fields of a section instead of replacing it
    if isinstance(value, dict) and isinstance(target[name], dict):
        for field_name, field_value in value.items():
            _apply_override(config_dict, f"{key}.{field_name}", field_value)
    else:
        target[name] = value


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> OrthoscopeConfig:
    """
    Load config from YAML and apply overrides.

    Keys may be dotted to reach a field of a section, e.g.
    ``{"query.max_workers": 8}``, or name a section with a mapping of
    its fields, e.g. ``{"versions": {"oma_release": "All.Jul2024"}}``.

    Args:
        config_path: Path to YAML configuration file
        overrides: Values to override

    Returns:
        Validated OrthoscopeConfig with overrides applied

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If a key names an unknown section or field
        pydantic.ValidationError: If final config is invalid
    """
    config = load_config(config_path)
    if not overrides:
        return config

    config_dict = config.model_dump()
    for key, value in overrides.items():
        _apply_override(config_dict, key, value)

    # Re-validate so overrides obey the same constraints as the file
    return OrthoscopeConfig.model_validate(config_dict)
