"""External build step.

The release engine does not build anything itself. It calls a build
runner with the project name, the build target name and the project
root, and only looks at success or failure.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class BuildRunner(Protocol):
    def __call__(self, project: str, target: str, root: Path) -> bool: ...


class CommandBuildRunner:
    """Runs a shell command template such as ``make -C {root} {target}``.

    Placeholders: ``{project}``, ``{target}``, ``{root}``.
    """

    def __init__(self, command: str, cwd: Path, timeout: float | None = None) -> None:
        self.command = command
        self.cwd = cwd
        self.timeout = timeout

    def __call__(self, project: str, target: str, root: Path) -> bool:
        expanded = self.command.format(project=project, target=target, root=root)
        logger.info("build_started", project=project, target=target, command=expanded)

        try:
            result = subprocess.run(
                expanded,
                shell=True,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error("build_timed_out", project=project, target=target, timeout=self.timeout)
            return False

        if result.returncode != 0:
            logger.error(
                "build_failed",
                project=project,
                target=target,
                returncode=result.returncode,
                stderr=result.stderr.strip()[-2000:],
            )
            return False

        logger.info("build_completed", project=project, target=target)
        return True
