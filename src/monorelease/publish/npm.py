"""npm registry publisher.

The existence probe queries the registry's package metadata endpoint;
the upload itself is delegated to ``npm publish`` so npm's own tarball
integrity handling and authentication (``.npmrc``) apply.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import ClassVar
from urllib.parse import quote

import httpx
import structlog

from monorelease.config.models import NpmConfig
from monorelease.exceptions import UploadError
from monorelease.publish.base import BasePublisher
from monorelease.publish.checksum import file_checksum

logger = structlog.get_logger(__name__)

_NPM_ERROR_REASONS = (
    ("E401", "authentication failed"),
    ("ENEEDAUTH", "authentication failed"),
    ("EOTP", "authentication failed"),
    ("E403", "access denied"),
    ("E404", "package not found"),
)

Runner = Callable[..., subprocess.CompletedProcess]


class NpmPublisher(BasePublisher):
    """Publishes a package tarball with the npm CLI."""

    registry_type: ClassVar[str] = "npm"
    probe_errors: ClassVar[tuple[type[Exception], ...]] = (httpx.HTTPError,)

    config: NpmConfig

    def __init__(
        self,
        config: NpmConfig,
        client: httpx.Client | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        super().__init__(config)
        self.client = client or httpx.Client(follow_redirects=True)
        self.runner = runner

    def close(self) -> None:
        self.client.close()

    def _package_url(self) -> str:
        # Scoped names keep the "@" but encode the slash.
        return f"{self.config.registry_url.rstrip('/')}/{quote(self.config.package_name or '', safe='@')}"

    def location(self, key: str, version: str) -> str:
        return f"{self._package_url()}/{version}"

    def exists(self, key: str, version: str) -> bool:
        response = self.client.get(self.location(key, version), timeout=self.config.probe_timeout)
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    def build_command(self, artifact: Path) -> list[str]:
        command = [
            "npm",
            "publish",
            str(artifact),
            "--registry",
            self.config.registry_url,
            "--tag",
            self.config.dist_tag,
            "--access",
            self.config.access,
        ]
        if self.config.otp:
            command += ["--otp", self.config.otp]
        return command

    def upload(self, artifact: Path, key: str, version: str) -> None:
        logger.debug("npm_artifact_checksum", artifact=artifact.name, sha1=file_checksum(artifact, "sha1"))
        command = self.build_command(artifact)

        try:
            self.runner(
                command,
                cwd=artifact.parent,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.config.upload_timeout,
            )
        except FileNotFoundError as e:
            raise UploadError("npm executable not found on PATH", registry="npm") from e
        except subprocess.TimeoutExpired as e:
            raise UploadError(
                f"Failed to publish to npm: timed out after {self.config.upload_timeout}s",
                registry="npm",
            ) from e
        except subprocess.CalledProcessError as e:
            output = (e.stderr or "") + (e.stdout or "")
            reason = next((r for code, r in _NPM_ERROR_REASONS if code in output), "publish rejected")
            raise UploadError(
                f"Failed to publish to npm: {reason}\n{output.strip()}",
                registry="npm",
            ) from e
