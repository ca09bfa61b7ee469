"""monorelease: conventional-commit releases for multi-project repositories.

Resolves semantic versions, compiles changelogs and publishes artifacts
for the projects of one workspace.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
