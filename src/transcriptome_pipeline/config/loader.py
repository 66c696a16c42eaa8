"""Configuration loading with YAML parsing and validation."""

from pathlib import Path
from typing import Any

import pydantic_yaml
from pydantic import ValidationError

from transcriptome_pipeline.errors import ConfigurationError

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Load and validate pipeline configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated, immutable PipelineConfig instance

    Raises:
        ConfigurationError: If the file is missing or the config is invalid
            (the pydantic ValidationError is chained as the cause)
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        yaml_content = f.read()

    try:
        return pydantic_yaml.parse_yaml_raw_as(PipelineConfig, yaml_content)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}:\n{e}") from e


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> PipelineConfig:
    """
    Load config from YAML and apply dictionary overrides.

    Useful for CLI flags that override config file values. The config is
    frozen, so overrides produce a new validated instance.

    Args:
        config_path: Path to YAML configuration file
        overrides: Dictionary of values to override (dotted keys supported,
            e.g. "similarity_search.evalue")

    Returns:
        Validated PipelineConfig with overrides applied

    Raises:
        ConfigurationError: If the file is missing, an override names an
            unknown key or the final config is invalid
    """
    config = load_config(config_path)

    config_dict = config.model_dump()

    for key, value in overrides.items():
        parts = key.split(".")
        target = config_dict
        for part in parts[:-1]:
            target = target.get(part) if isinstance(target, dict) else None
        if not isinstance(target, dict) or parts[-1] not in target:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        target[parts[-1]] = value

    try:
        return PipelineConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration overrides {overrides}:\n{e}") from e
