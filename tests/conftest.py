"""Pytest configuration and shared fixtures for tests."""

import os
import sys
import textwrap
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from solbench.models import RunMode, SolutionRef, SolutionStatus, SolutionSummary

# Path Fixtures


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# Environment Fixtures


@pytest.fixture(autouse=True)
def clean_environment() -> Generator[None, None, None]:
    """Ensure clean environment for each test."""
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


# Solution Fixtures


@pytest.fixture
def make_ref() -> Callable[..., SolutionRef]:
    """Build a SolutionRef running inline Python code."""

    def _make(code: str, project: str = "p", solution: str = "s") -> SolutionRef:
        return SolutionRef(
            project=project,
            solution=solution,
            command=(sys.executable, "-c", textwrap.dedent(code)),
        )

    return _make


@pytest.fixture
def solutions_root(tmp_path: Path) -> Path:
    """Return an empty solution root directory."""
    root = tmp_path / "solutions"
    root.mkdir()
    return root


@pytest.fixture
def write_solution(solutions_root: Path) -> Callable[[str, str, str], Path]:
    """Write a Python solution script under `root/<project>/<name>.py`."""

    def _write(project: str, name: str, code: str) -> Path:
        project_dir = solutions_root / project
        project_dir.mkdir(exist_ok=True)
        path = project_dir / f"{name}.py"
        path.write_text(textwrap.dedent(code))
        return path

    return _write


@pytest.fixture
def sample_solutions(write_solution: Callable[[str, str, str], Path], solutions_root: Path) -> Path:
    """A root with two passing solutions in one project and a failing one in another."""
    write_solution("2022", "d01", "print(42)\n")
    write_solution("2022", "d02", "print('hello')\n")
    write_solution(
        "2023",
        "d01",
        """
        import sys
        print("boom", file=sys.stderr)
        sys.exit(3)
        """,
    )
    return solutions_root


# Summary Fixtures


def passed_summary(
    project: str,
    solution: str,
    mean: float,
    mode: RunMode = RunMode.BENCH,
    iterations: int = 5,
) -> SolutionSummary:
    """Build a consistent passed summary around a mean."""
    return SolutionSummary(
        project=project,
        solution=solution,
        status=SolutionStatus.PASSED,
        mode=mode,
        iterations=iterations,
        min=mean * 0.9,
        max=mean * 1.1,
        mean=mean,
        median=mean,
        stdev=mean * 0.05,
        p95=mean * 1.1,
        p99=mean * 1.1,
        total=mean * iterations,
        output="42",
    )


def failed_summary(
    project: str,
    solution: str,
    mode: RunMode = RunMode.BENCH,
    error_kind: str = "RunFailed",
) -> SolutionSummary:
    """Build a failed summary."""
    return SolutionSummary(
        project=project,
        solution=solution,
        status=SolutionStatus.FAILED,
        mode=mode,
        error_kind=error_kind,
        error="exited with status 1",
    )


@pytest.fixture
def summary_factory() -> Callable[..., SolutionSummary]:
    return passed_summary


@pytest.fixture
def failure_factory() -> Callable[..., SolutionSummary]:
    return failed_summary


# Pytest Configuration


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Add markers based on location and skip slow tests unless enabled."""
    for item in items:
        if "test_" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "slow" in item.keywords and not config.getoption("--run-slow", default=False):
            item.add_marker(pytest.mark.skip(reason="slow tests disabled (use --run-slow)"))


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )
