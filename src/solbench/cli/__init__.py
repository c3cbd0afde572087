"""solbench Command Line Interface.

This module provides the command-line interface for solbench, enabling users
to run and benchmark solutions, list them, and merge saved reports.
"""

from solbench.cli.config_loader import (
    HarnessConfig,
    LoggingConfig,
    ManifestEntry,
    RegistryConfig,
    create_config,
    deep_merge,
    get_default_config_path,
    get_env_config_overrides,
    interpolate_env_vars,
    load_config,
    load_yaml_config,
    validate_config,
)
from solbench.cli.main import ExitCode, cli, exit_code_for

__all__ = [
    # CLI entry point
    "cli",
    "ExitCode",
    "exit_code_for",
    # Configuration models
    "HarnessConfig",
    "LoggingConfig",
    "ManifestEntry",
    "RegistryConfig",
    # Configuration utilities
    "load_config",
    "load_yaml_config",
    "create_config",
    "validate_config",
    "interpolate_env_vars",
    "get_env_config_overrides",
    "get_default_config_path",
    "deep_merge",
]
