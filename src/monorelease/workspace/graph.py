"""Internal dependency graph of the workspace projects.

The graph is supplied from outside (configuration) as a plain mapping of
project name to the names of the internal projects it depends on. It is
read-only once built; reverse adjacency is indexed up front so
"who depends on X" is a dictionary lookup.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from pathlib import PurePosixPath


class DependencyGraph:
    """Project dependency graph with indexed reverse edges."""

    def __init__(self, dependencies: Mapping[str, Iterable[str]] | None = None) -> None:
        self._dependencies: dict[str, tuple[str, ...]] = {}
        self._dependents: dict[str, list[str]] = {}

        for project, deps in (dependencies or {}).items():
            unique = tuple(dict.fromkeys(d for d in deps if d != project))
            self._dependencies[project] = unique
            self._dependents.setdefault(project, [])
            for dep in unique:
                self._dependencies.setdefault(dep, ())
                self._dependents.setdefault(dep, []).append(project)

    @property
    def projects(self) -> list[str]:
        return sorted(self._dependencies)

    def __contains__(self, project: object) -> bool:
        return project in self._dependencies

    def __len__(self) -> int:
        return len(self._dependencies)

    def dependencies_of(self, project: str) -> tuple[str, ...]:
        return self._dependencies.get(project, ())

    def dependents_of(self, project: str) -> list[str]:
        """Projects that list ``project`` as a direct dependency."""
        return list(self._dependents.get(project, []))

    def affected_by(self, changed: Iterable[str]) -> list[str]:
        """Projects that transitively depend on any of ``changed``.

        Iterative breadth-first walk over reverse edges with a visited set,
        so cycles and diamonds terminate. The changed projects themselves
        are only included when reached through a cycle. Result is in
        discovery order.
        """
        queue = deque(dict.fromkeys(changed))
        visited: set[str] = set()
        affected: list[str] = []

        while queue:
            current = queue.popleft()
            for dependent in self._dependents.get(current, []):
                if dependent in visited:
                    continue
                visited.add(dependent)
                affected.append(dependent)
                queue.append(dependent)

        return affected

    def with_dependents(self, projects: Iterable[str]) -> list[str]:
        """``projects`` followed by everything affected by them, deduplicated."""
        start = list(dict.fromkeys(projects))
        return list(dict.fromkeys([*start, *self.affected_by(start)]))


def projects_for_files(
    changed_files: Iterable[str],
    project_roots: Mapping[str, str],
) -> list[str]:
    """Projects whose root directory contains at least one changed file.

    Args:
        changed_files: Repository-relative paths (POSIX separators)
        project_roots: Project name to repository-relative root
    """
    roots = {
        name: PurePosixPath(root.strip("/")) for name, root in project_roots.items() if root.strip("/") not in ("", ".")
    }
    touched: list[str] = []
    for path in changed_files:
        file_path = PurePosixPath(path)
        for name, root in roots.items():
            if name not in touched and (file_path == root or root in file_path.parents):
                touched.append(name)
    return touched


def affected_projects(
    changed_files: Iterable[str],
    project_roots: Mapping[str, str],
    graph: DependencyGraph,
) -> set[str]:
    """Projects touched by ``changed_files`` plus their dependents."""
    direct = projects_for_files(changed_files, project_roots)
    return set(graph.with_dependents(direct))
