"""Reading and writing project version files.

A project lists candidate version files in order (``project.json``,
``package.json``, ...). The first one that exists and holds a value at
the configured version field is the version source, and release writes
go back to that same field of that same file.

Supported formats:

- JSON files, addressed with a dot path (``version``, ``release.version``)
- pyproject.toml, ``[project]`` or ``[tool.poetry]`` version, rewritten in
  place with a regex so formatting and comments survive
- plain text files (``VERSION``) holding only the version
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from monorelease.exceptions import ProjectError, VersionNotFoundError

_VERSION_ASSIGN_RE = r'^(version\s*=\s*)["\'][^"\']+["\']'

# Each section runs up to the next table header or EOF.
_SECTION_RES = (
    re.compile(r"^\[project\].*?(?=^\[|\Z)", re.MULTILINE | re.DOTALL),
    re.compile(r"^\[tool\.poetry\].*?(?=^\[|\Z)", re.MULTILINE | re.DOTALL),
)


@dataclass(frozen=True)
class VersionSource:
    """Where a project's current version was read from."""

    path: Path
    version: str


# =============================================================================
# JSON
# =============================================================================


def _get_dot_path(data: Any, dot_path: str) -> Any:
    current = data
    for key in dot_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _set_dot_path(data: dict[str, Any], dot_path: str, value: str) -> None:
    keys = dot_path.split(".")
    current = data
    for key in keys[:-1]:
        nested = current.get(key)
        if not isinstance(nested, dict):
            nested = current[key] = {}
        current = nested
    current[keys[-1]] = value


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProjectError(f"Invalid JSON in {path}: {e}") from e


def _read_json_version(path: Path, version_path: str) -> str | None:
    value = _get_dot_path(_load_json(path), version_path)
    return str(value) if isinstance(value, str) and value.strip() else None


def _write_json_version(path: Path, version_path: str, new_version: str) -> None:
    original = path.read_text(encoding="utf-8")
    data = _load_json(path)
    if not isinstance(data, dict):
        raise ProjectError(f"Cannot set '{version_path}' in {path}: top level is not an object")

    _set_dot_path(data, version_path, new_version)
    content = json.dumps(data, indent=2, ensure_ascii=False)
    if original.endswith("\n"):
        content += "\n"
    path.write_text(content, encoding="utf-8")


# =============================================================================
# pyproject.toml
# =============================================================================


def get_pyproject_version(content: str) -> str | None:
    """Version from ``[project]`` (PEP 621), else ``[tool.poetry]``."""
    for section_re in _SECTION_RES:
        section = section_re.search(content)
        if section is None:
            continue
        match = re.search(r"^version\s*=\s*[\"']([^\"']+)[\"']", section.group(0), re.MULTILINE)
        if match:
            return match.group(1)
    return None


def update_pyproject_version(content: str, new_version: str) -> str:
    """Rewrite the version of the first section that declares one.

    Raises:
        VersionNotFoundError: If neither section declares a version
    """

    def replace_in_section(match: re.Match[str]) -> str:
        return re.sub(
            _VERSION_ASSIGN_RE,
            rf'\g<1>"{new_version}"',
            match.group(0),
            count=1,
            flags=re.MULTILINE,
        )

    for section_re in _SECTION_RES:
        match = section_re.search(content)
        if match and re.search(_VERSION_ASSIGN_RE, match.group(0), re.MULTILINE):
            return section_re.sub(replace_in_section, content, count=1)

    raise VersionNotFoundError("Expected [project].version or [tool.poetry].version.")


# =============================================================================
# Dispatch
# =============================================================================


def _format_of(path: Path) -> str:
    if path.suffix == ".json":
        return "json"
    if path.name == "pyproject.toml":
        return "pyproject"
    return "text"


def read_version_file(path: Path, version_path: str = "version") -> str | None:
    """Version held by ``path``, or None when the field is absent."""
    file_format = _format_of(path)
    if file_format == "json":
        return _read_json_version(path, version_path)
    if file_format == "pyproject":
        return get_pyproject_version(path.read_text(encoding="utf-8"))
    value = path.read_text(encoding="utf-8").strip()
    return value or None


def write_version_file(path: Path, new_version: str, version_path: str = "version") -> None:
    """Set the version in ``path``, leaving everything else as it was.

    Raises:
        ProjectError: If the file does not exist or cannot be updated
    """
    if not path.is_file():
        raise ProjectError(f"Version file not found: {path}")

    file_format = _format_of(path)
    if file_format == "json":
        _write_json_version(path, version_path, new_version)
    elif file_format == "pyproject":
        content = path.read_text(encoding="utf-8")
        try:
            path.write_text(update_pyproject_version(content, new_version), encoding="utf-8")
        except VersionNotFoundError as e:
            raise VersionNotFoundError(f"Could not find version to update in {path}. {e}") from e
    else:
        path.write_text(f"{new_version}\n", encoding="utf-8")


def read_project_version(
    project_root: Path,
    version_files: list[str] | tuple[str, ...],
    version_path: str = "version",
) -> VersionSource | None:
    """First candidate file under ``project_root`` that yields a version.

    Args:
        project_root: Project directory
        version_files: Candidate file names, in priority order
        version_path: Dot path of the version field in JSON files

    Returns:
        VersionSource, or None when no candidate yields a version
    """
    for name in version_files:
        path = project_root / name
        if not path.is_file():
            continue
        version = read_version_file(path, version_path)
        if version:
            return VersionSource(path=path, version=version)
    return None


def write_project_version(
    project_root: Path,
    version_files: list[str] | tuple[str, ...],
    new_version: str,
    version_path: str = "version",
    source: VersionSource | None = None,
) -> Path:
    """Write ``new_version`` back to the project's version source.

    Falls back to the first existing candidate file when no source holds a
    version yet (first release).

    Returns:
        Path of the updated file

    Raises:
        VersionNotFoundError: If none of the candidate files exists
    """
    source = source or read_project_version(project_root, version_files, version_path)
    if source is not None:
        target = source.path
    else:
        existing = [project_root / name for name in version_files if (project_root / name).is_file()]
        if not existing:
            raise VersionNotFoundError(
                f"No version file found in {project_root}. Looked for: {', '.join(version_files)}"
            )
        target = existing[0]

    write_version_file(target, new_version, version_path)
    return target
