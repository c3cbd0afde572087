"""Configuration loading and validation for the solbench CLI.

This module provides utilities for loading, merging, and validating
configuration files with support for environment variable interpolation.
"""

from __future__ import annotations

import os
import re
import shlex
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from solbench.errors import ConfigError
from solbench.models.solution import SolutionRef
from solbench.registry import SolutionRegistry
from solbench.runner.config import RunConfig


class ManifestEntry(BaseModel):
    """A solution declared explicitly instead of discovered."""

    project: str = Field(min_length=1)
    solution: str = Field(min_length=1)
    command: list[str] = Field(min_length=1)

    @field_validator("command", mode="before")
    @classmethod
    def split_command(cls, v: Any) -> Any:
        """Accept a shell-style command string."""
        if isinstance(v, str):
            return shlex.split(v)
        return v

    def to_ref(self) -> SolutionRef:
        return SolutionRef(project=self.project, solution=self.solution, command=self.command)


class RegistryConfig(BaseModel):
    """Where solutions are found and which ones are selected."""

    root: str | None = Field(
        default=None, description="Directory with one subdirectory per project"
    )
    projects: list[str] = Field(default_factory=list)
    names: list[str] = Field(default_factory=list)
    solutions: list[ManifestEntry] = Field(default_factory=list)

    def to_registry(self) -> SolutionRegistry:
        return SolutionRegistry(
            root=Path(self.root) if self.root else None,
            projects=self.projects,
            names=self.names,
            manifest=[entry.to_ref() for entry in self.solutions],
        )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="rich")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"level must be one of {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = {"rich", "plain"}
        if v.lower() not in allowed:
            raise ValueError(f"format must be one of {allowed}")
        return v.lower()


class HarnessConfig(BaseModel):
    """Complete solbench configuration."""

    run: RunConfig = Field(default_factory=RunConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Environment variable pattern: ${VAR_NAME} or ${VAR_NAME:default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::([^}]*))?\}")


def interpolate_env_vars(value: Any) -> Any:
    """Recursively interpolate environment variables in config values.

    Supports:
        ${VAR_NAME} - Required env var
        ${VAR_NAME:default} - Env var with default value

    Raises:
        ConfigError: If a required env var is not set
    """
    if isinstance(value, str):
        return _interpolate_string(value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def _interpolate_string(value: str) -> str:
    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        elif default is not None:
            return default
        else:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set and no default provided"
            )

    return ENV_VAR_PATTERN.sub(replace_match, value)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values in override take precedence. Nested dicts are merged recursively.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If the file is missing, unreadable, or not a YAML mapping
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return config


def _validate(config: dict[str, Any]) -> HarnessConfig:
    try:
        return HarnessConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(
    config_path: Path | None = None,
    *,
    interpolate_env: bool = True,
    validate: bool = True,
) -> dict[str, Any] | HarnessConfig:
    """Load and optionally validate a configuration file.

    Args:
        config_path: Path to config file. If None, returns default config.
        interpolate_env: Whether to interpolate environment variables
        validate: Whether to validate and return a HarnessConfig model

    Returns:
        Configuration dictionary or HarnessConfig model if validate=True
    """
    config = load_yaml_config(config_path) if config_path is not None else {}

    if interpolate_env:
        config = interpolate_env_vars(config)

    if validate:
        return _validate(config)
    return config


def get_default_config_path() -> Path | None:
    """Get the default configuration file path.

    Searches for config in order:
        1. SOLBENCH_CONFIG environment variable
        2. ./solbench.yaml
        3. ./solbench.yml
        4. ./configs/solbench.yaml

    Returns:
        Path to config file or None if not found
    """
    env_config = os.environ.get("SOLBENCH_CONFIG")
    if env_config:
        path = Path(env_config)
        if path.exists():
            return path

    search_paths = [
        Path("solbench.yaml"),
        Path("solbench.yml"),
        Path("configs/solbench.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def validate_config(config: dict[str, Any]) -> list[str]:
    """Validate a configuration dictionary.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: list[str] = []

    try:
        HarnessConfig.model_validate(config)
    except ValidationError as e:
        errors.extend(
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in e.errors()
        )

    return errors


def _env_number(name: str, convert: type[int] | type[float]) -> int | float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return convert(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def get_env_config_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables.

    Supports:
        SOLBENCH_ROOT - Solution root directory
        SOLBENCH_WORKERS - Number of concurrent workers
        SOLBENCH_WARMUP_MS - Warmup budget in milliseconds
        SOLBENCH_TIME_LIMIT_MS - Measurement budget in milliseconds
        SOLBENCH_LOG_LEVEL - Log level

    Returns:
        Configuration dictionary with env var overrides
    """
    overrides: dict[str, Any] = {}

    if root := os.environ.get("SOLBENCH_ROOT"):
        overrides.setdefault("registry", {})["root"] = root

    if (workers := _env_number("SOLBENCH_WORKERS", int)) is not None:
        overrides.setdefault("run", {})["workers"] = workers

    if (warmup := _env_number("SOLBENCH_WARMUP_MS", float)) is not None:
        overrides.setdefault("run", {})["warmup"] = warmup / 1000

    if (time_limit := _env_number("SOLBENCH_TIME_LIMIT_MS", float)) is not None:
        overrides.setdefault("run", {})["time_limit"] = time_limit / 1000

    if log_level := os.environ.get("SOLBENCH_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level

    return overrides


def create_config(
    config_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
    *,
    use_env_vars: bool = True,
) -> HarnessConfig:
    """Create a complete configuration from multiple sources.

    Configuration precedence (highest to lowest):
        1. CLI overrides
        2. Environment variable overrides
        3. User config file
        4. Default values

    Args:
        config_path: Path to user config file
        cli_overrides: Overrides from CLI options
        use_env_vars: Whether to include environment variable overrides

    Returns:
        Complete HarnessConfig

    Raises:
        ConfigError: If any source is unreadable or the result is invalid
    """
    config: dict[str, Any] = {}

    if config_path is not None:
        user_config = load_yaml_config(config_path)
        user_config = interpolate_env_vars(user_config)
        config = deep_merge(config, user_config)

    if use_env_vars:
        config = deep_merge(config, get_env_config_overrides())

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    return _validate(config)
