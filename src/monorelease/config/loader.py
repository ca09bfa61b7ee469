"""Configuration loading and per-project resolution.

Workspace configuration is read from ``[tool.monorelease]`` in the
nearest pyproject.toml. Each project may carry its own
``[tool.monorelease]`` table in ``<root>/pyproject.toml``.

The effective configuration of a project is built by
``resolve_project_config`` from these layers, highest precedence first:

1. explicit options (command line)
2. the project's own pyproject.toml
3. the workspace ``projects.<name>`` entry
4. the project's release group
5. workspace defaults
6. built-in defaults
"""

from __future__ import annotations

import tomllib
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from monorelease.config.models import (
    MonoReleaseConfig,
    ProjectConfig,
    ReleaseGroupConfig,
    ResolvedProjectConfig,
)
from monorelease.exceptions import ConfigNotFoundError, ConfigValidationError

logger = structlog.get_logger(__name__)

TOOL_KEY = "monorelease"

# Keys merged field by field instead of being replaced wholesale.
_NESTED_KEYS = ("changelog", "git")


def find_pyproject_toml(start_path: Path | None = None) -> Path:
    """Find pyproject.toml by walking up from start_path.

    Args:
        start_path: Directory to start searching from (defaults to cwd)

    Returns:
        Path to pyproject.toml

    Raises:
        ConfigNotFoundError: If no pyproject.toml found
    """
    current = (start_path or Path.cwd()).resolve()

    for directory in [current, *current.parents]:
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate

    raise ConfigNotFoundError(f"No pyproject.toml found in {current} or any parent directory")


def load_pyproject_toml(path: Path) -> dict[str, Any]:
    """Parse a pyproject.toml file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigValidationError: If the file is not valid TOML
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Configuration file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def extract_monorelease_config(pyproject: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.monorelease]`` table, or an empty dict."""
    return dict(pyproject.get("tool", {}).get(TOOL_KEY, {}))


def _validation_error(source: str, error: ValidationError) -> ConfigValidationError:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in error.errors()
    )
    return ConfigValidationError(f"Invalid monorelease configuration in {source}: {problems}")


def load_config(path: Path | None = None) -> MonoReleaseConfig:
    """Load workspace configuration.

    Args:
        path: Workspace directory or pyproject.toml path (defaults to cwd)

    Returns:
        MonoReleaseConfig; defaults when the table is absent
    """
    pyproject_path = path if path is not None and path.is_file() else find_pyproject_toml(path)
    data = extract_monorelease_config(load_pyproject_toml(pyproject_path))

    try:
        config = MonoReleaseConfig.model_validate(data)
    except ValidationError as e:
        raise _validation_error(str(pyproject_path), e) from e

    logger.debug("config_loaded", path=str(pyproject_path), projects=len(config.projects))
    return config


def load_project_file(project_root: Path) -> dict[str, Any]:
    """``[tool.monorelease]`` of a project's own pyproject.toml, if any."""
    pyproject_path = project_root / "pyproject.toml"
    if not pyproject_path.is_file():
        return {}
    data = extract_monorelease_config(load_pyproject_toml(pyproject_path))
    if not data:
        return {}

    try:
        ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise _validation_error(str(pyproject_path), e) from e
    return data


def find_release_group(
    config: MonoReleaseConfig,
    project: str,
    explicit: str | None = None,
) -> tuple[str, ReleaseGroupConfig] | None:
    """Release group of ``project``.

    Looked up by explicit name, then the project entry's ``release_group``,
    then the first group whose patterns match the project name.

    Raises:
        ConfigValidationError: If a named group does not exist
    """
    entry = config.projects.get(project)
    name = explicit or (entry.release_group if entry else None)

    if name:
        if name not in config.release_groups:
            raise ConfigValidationError(f"Unknown release group '{name}' for project '{project}'")
        return name, config.release_groups[name]

    for group_name, group in config.release_groups.items():
        if any(fnmatchcase(project, pattern) for pattern in group.projects):
            return group_name, group
    return None


def _merge_layer(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in layer.items():
        if value is None:
            continue
        if key in _NESTED_KEYS and isinstance(value, dict):
            merged[key] = {**merged.get(key, {}), **value}
        elif key == "registry" and isinstance(value, dict):
            current = merged.get(key)
            # Same backend: refine field by field; different backend: replace.
            if isinstance(current, dict) and current.get("type") == value.get("type", current.get("type")):
                merged[key] = {**current, **value}
            else:
                merged[key] = dict(value)
        else:
            merged[key] = value
    return merged


def resolve_project_config(
    config: MonoReleaseConfig,
    project: str,
    *,
    workspace_root: Path,
    overrides: dict[str, Any] | None = None,
    project_file: dict[str, Any] | None = None,
) -> ResolvedProjectConfig:
    """Build the effective configuration of ``project``.

    Args:
        config: Workspace configuration
        project: Project name
        workspace_root: Directory holding the workspace pyproject.toml
        overrides: Explicit options, highest precedence
        project_file: Pre-loaded project pyproject table; read from disk when None

    Returns:
        Frozen ResolvedProjectConfig

    Raises:
        ConfigValidationError: If the merged configuration is invalid
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    entry = config.projects.get(project, ProjectConfig())
    root = workspace_root / (overrides.pop("root", None) or entry.root or project)

    if project_file is None:
        project_file = load_project_file(root)

    group = find_release_group(
        config,
        project,
        explicit=overrides.pop("release_group", None) or project_file.get("release_group"),
    )

    workspace_layer = config.model_dump(
        exclude={"release_groups", "projects", "track_deps", "max_workers", "build_command"},
        exclude_none=True,
    )
    layers: list[dict[str, Any]] = [workspace_layer]
    if group is not None:
        layers.append(group[1].model_dump(exclude={"projects", "sync_strategy", "primary"}, exclude_none=True))
    layers.append(entry.model_dump(exclude={"root", "release_group"}, exclude_unset=True))
    layers.append({k: v for k, v in project_file.items() if k not in ("root", "release_group")})
    layers.append(overrides)

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _merge_layer(merged, layer)

    merged["name"] = project
    merged["root"] = root
    merged["release_group"] = group[0] if group else None
    merged.setdefault("dependencies", list(entry.dependencies))

    try:
        resolved = ResolvedProjectConfig.model_validate(merged)
    except ValidationError as e:
        raise _validation_error(f"project '{project}'", e) from e

    logger.debug(
        "project_config_resolved",
        project=project,
        release_group=resolved.release_group,
        relationship=resolved.relationship,
    )
    return resolved


def get_release_group(config: MonoReleaseConfig, name: str | None) -> ReleaseGroupConfig | None:
    if not name:
        return None
    return config.release_groups.get(name)
