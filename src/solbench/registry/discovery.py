"""Solution discovery.

Solutions are laid out one directory per project:

    solutions/
        2022/
            d01          (executable)
            d02.py       (run with the current interpreter)
        2023/
            bin/         (when present, scanned instead of the project dir)
                d01

Explicit manifest entries can add solutions that live elsewhere.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterable, Iterator
from itertools import chain
from pathlib import Path

from solbench.errors import RegistryError
from solbench.models.solution import SolutionRef

logger = logging.getLogger(__name__)

SCRIPT_SUFFIXES = {".py": (sys.executable,)}


def _is_hidden(path: Path) -> bool:
    return path.name.startswith((".", "_"))


def command_for(path: Path) -> tuple[str, ...] | None:
    """Argument vector invoking the solution at `path`, or None if it is not one."""
    if not path.is_file() or _is_hidden(path):
        return None
    interpreter = SCRIPT_SUFFIXES.get(path.suffix)
    if interpreter is not None:
        return (*interpreter, str(path))
    if os.access(path, os.X_OK):
        return (str(path),)
    return None


class SolutionRegistry:
    """Enumerates solutions across projects.

    Iteration is lazy and restartable: every call to `discover` (or `iter`)
    scans again. Results are ordered by project then solution identifier.

    Example:
        >>> registry = SolutionRegistry(Path("solutions"), projects=["2022"])
        >>> for ref in registry:
        ...     print(ref.label)
    """

    def __init__(
        self,
        root: Path | None = None,
        projects: Iterable[str] | None = None,
        names: Iterable[str] | None = None,
        manifest: Iterable[SolutionRef] = (),
    ) -> None:
        """Initialize the registry.

        Args:
            root: Directory holding one subdirectory per project.
            projects: Only include these projects (all if None or empty).
            names: Only include solutions whose id or `project/id` label matches.
            manifest: Explicitly declared solutions.
        """
        self.root = Path(root) if root is not None else None
        self.projects = set(projects or ())
        self.names = set(names or ())
        self.manifest = list(manifest)

    def _selected(self, ref: SolutionRef) -> bool:
        if self.projects and ref.project not in self.projects:
            return False
        if self.names and ref.solution not in self.names and ref.label not in self.names:
            return False
        return True

    def _project_dirs(self, root: Path) -> list[Path]:
        if not root.is_dir():
            raise RegistryError(f"solution root is not a directory: {root}")
        try:
            return sorted(
                (p for p in root.iterdir() if p.is_dir() and not _is_hidden(p)),
                key=lambda p: p.name,
            )
        except OSError as e:
            raise RegistryError(f"cannot list solution root {root}: {e}") from e

    def _scan_project(self, project_dir: Path) -> Iterator[SolutionRef]:
        source = project_dir / "bin" if (project_dir / "bin").is_dir() else project_dir
        try:
            entries = sorted(source.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise RegistryError(f"cannot list project {project_dir}: {e}") from e

        for entry in entries:
            command = command_for(entry)
            if command is None:
                continue
            yield SolutionRef(project=project_dir.name, solution=entry.stem, command=command)

    def _scan(self) -> Iterator[SolutionRef]:
        if self.root is None:
            return
        for project_dir in self._project_dirs(self.root):
            if self.projects and project_dir.name not in self.projects:
                continue
            yield from self._scan_project(project_dir)

    def discover(self) -> Iterator[SolutionRef]:
        """Lazily yield every selected solution.

        Raises:
            RegistryError: If the root cannot be enumerated or two solutions
                share an identifier.
        """
        if self.root is None and not self.manifest:
            raise RegistryError("no solution root or manifest entries configured")

        seen: set[tuple[str, str]] = set()
        manifest = sorted(self.manifest, key=lambda r: r.key)
        for ref in chain(self._scan(), manifest):
            if ref.key in seen:
                raise RegistryError(f"duplicate solution {ref.label}")
            seen.add(ref.key)
            if self._selected(ref):
                logger.debug("Discovered %s", ref.label)
                yield ref

    def __iter__(self) -> Iterator[SolutionRef]:
        return self.discover()

    def refs(self) -> list[SolutionRef]:
        """Materialize discovery, ordered by project and solution."""
        return sorted(self.discover(), key=lambda r: r.key)
