"""Pytest configuration for CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

SOLBENCH_VARS = (
    "SOLBENCH_CONFIG",
    "SOLBENCH_ROOT",
    "SOLBENCH_WORKERS",
    "SOLBENCH_WARMUP_MS",
    "SOLBENCH_TIME_LIMIT_MS",
    "SOLBENCH_LOG_LEVEL",
)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create an isolated CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ambient config files and SOLBENCH_* variables out of CLI tests."""
    for var in SOLBENCH_VARS:
        monkeypatch.delenv(var, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def sample_yaml_config(tmp_path: Path, sample_solutions: Path) -> Path:
    """Create a sample YAML configuration file."""
    config_content = f"""\
# solbench configuration
run:
  bench: true
  warmup: 0.0
  time_limit: 0.02
  iterations: 2

registry:
  root: {sample_solutions}
  projects:
    - "2022"

logging:
  level: warning
"""
    config_file = tmp_path / "solbench.yaml"
    config_file.write_text(config_content)
    return config_file
