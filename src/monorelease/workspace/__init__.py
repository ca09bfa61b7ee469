"""Workspace dependency graph and affected-project detection."""

from __future__ import annotations

from monorelease.workspace.graph import DependencyGraph, affected_projects, projects_for_files

__all__ = ["DependencyGraph", "affected_projects", "projects_for_files"]
