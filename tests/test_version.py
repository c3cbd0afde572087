"""Unit tests for version module."""

from solbench import __version__
from solbench.version import (
    PROJECT_DESCRIPTION,
    PROJECT_NAME,
    __author__,
    __license__,
    __version_info__,
)


class TestVersion:
    """Tests for version information."""

    def test_version_format(self) -> None:
        """Version should follow semantic versioning format."""
        parts = __version__.split(".")
        assert len(parts) == 3
        for part in parts:
            assert part.isdigit()

    def test_version_info_matches_version(self) -> None:
        """Version info should match version string."""
        expected = tuple(int(x) for x in __version__.split("."))
        assert __version_info__ == expected


class TestProjectMetadata:
    """Tests for project metadata."""

    def test_project_name(self) -> None:
        assert PROJECT_NAME == "solbench"

    def test_project_description_not_empty(self) -> None:
        assert "benchmark" in PROJECT_DESCRIPTION

    def test_author_and_license(self) -> None:
        assert __author__
        assert "Apache" in __license__
