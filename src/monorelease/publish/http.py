"""HTTP PUT registries (Nexus raw repositories and custom endpoints)."""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import ClassVar

import httpx

from monorelease.config.models import CustomConfig, NexusConfig
from monorelease.exceptions import UploadError
from monorelease.publish.base import BasePublisher, content_type_for
from monorelease.publish.checksum import file_checksums

_REQUEST_ID_HEADERS = ("x-request-id", "x-amz-request-id", "x-correlation-id", "request-id")

_STATUS_REASONS = {
    401: "authentication failed",
    403: "access denied",
    404: "repository not found",
    413: "artifact too large",
}


def request_id_of(response: httpx.Response) -> str | None:
    for header in _REQUEST_ID_HEADERS:
        if header in response.headers:
            return response.headers[header]
    return None


class HttpPublisher(BasePublisher):
    """PUT-based upload with a HEAD existence probe."""

    probe_errors: ClassVar[tuple[type[Exception], ...]] = (httpx.HTTPError,)
    checksum_headers: ClassVar[dict[str, str]] = {}

    def __init__(self, config, client: httpx.Client | None = None) -> None:
        super().__init__(config)
        self.client = client or httpx.Client(follow_redirects=True)

    def close(self) -> None:
        self.client.close()

    @abstractmethod
    def base_url(self) -> str: ...

    def auth(self) -> httpx.BasicAuth | None:
        if self.config.username and self.config.password:
            return httpx.BasicAuth(self.config.username, self.config.password)
        return None

    def extra_headers(self) -> dict[str, str]:
        return {}

    def location(self, key: str, version: str) -> str:
        return f"{self.base_url()}/{key}"

    def exists(self, key: str, version: str) -> bool:
        response = self.client.head(
            self.location(key, version),
            auth=self.auth(),
            headers=self.extra_headers(),
            timeout=self.config.probe_timeout,
        )
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    def upload(self, artifact: Path, key: str, version: str) -> None:
        url = self.location(key, version)
        checksums = file_checksums(artifact, list(self.checksum_headers))
        headers = {
            **self.extra_headers(),
            "Content-Type": content_type_for(artifact.name),
            **{header: checksums[algorithm] for algorithm, header in self.checksum_headers.items()},
        }

        try:
            response = self.client.put(
                url,
                content=artifact.read_bytes(),
                headers=headers,
                auth=self.auth(),
                timeout=self.config.upload_timeout,
            )
        except httpx.TimeoutException as e:
            raise UploadError(
                f"Failed to upload to {self.registry_type}: timed out after {self.config.upload_timeout}s",
                registry=self.registry_type,
            ) from e
        except httpx.HTTPError as e:
            raise UploadError(
                f"Failed to upload to {self.registry_type}: {e}",
                registry=self.registry_type,
            ) from e

        if response.is_error:
            reason = _STATUS_REASONS.get(response.status_code, response.reason_phrase or "upload rejected")
            raise UploadError(
                f"Failed to upload to {self.registry_type}: {reason}\nResponse: {response.text[:500]}",
                registry=self.registry_type,
                status_code=response.status_code,
                request_id=request_id_of(response),
            )


class NexusPublisher(HttpPublisher):
    """Nexus raw repository: ``{url}/repository/{repository}/{key}``."""

    registry_type: ClassVar[str] = "nexus"
    checksum_headers: ClassVar[dict[str, str]] = {"sha1": "X-Checksum-Sha1"}

    config: NexusConfig

    def base_url(self) -> str:
        return f"{(self.config.url or '').rstrip('/')}/repository/{self.config.repository}"


class CustomPublisher(HttpPublisher):
    """Any endpoint accepting ``PUT {url}/{key}``."""

    registry_type: ClassVar[str] = "custom"
    checksum_headers: ClassVar[dict[str, str]] = {
        "sha1": "X-Checksum-Sha1",
        "sha256": "X-Checksum-Sha256",
    }

    config: CustomConfig

    def base_url(self) -> str:
        return (self.config.url or "").rstrip("/")

    def extra_headers(self) -> dict[str, str]:
        headers = dict(self.config.headers)
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers
