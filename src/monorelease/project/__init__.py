"""Reading and writing project version files."""

from __future__ import annotations

from monorelease.project.version_files import (
    VersionSource,
    read_project_version,
    read_version_file,
    write_project_version,
    write_version_file,
)

__all__ = [
    "VersionSource",
    "read_project_version",
    "read_version_file",
    "write_project_version",
    "write_version_file",
]
