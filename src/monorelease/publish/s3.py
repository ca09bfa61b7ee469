"""AWS S3 publisher."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ClassVar

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    NoCredentialsError,
    ReadTimeoutError,
)

from monorelease.config.models import S3Config
from monorelease.exceptions import UploadError
from monorelease.publish.base import BasePublisher, content_type_for
from monorelease.publish.checksum import md5_base64

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

_ERROR_REASONS = {
    "NoSuchBucket": "bucket not found",
    "AccessDenied": "access denied",
    "InvalidAccessKeyId": "authentication failed",
    "SignatureDoesNotMatch": "authentication failed",
    "ExpiredToken": "authentication failed",
}


def create_s3_client(config: S3Config) -> Any:
    """boto3 S3 client honouring the configured region, keys and timeouts.

    Without explicit keys boto3 falls back to its default credential chain.
    """
    kwargs: dict[str, Any] = {
        "region_name": config.region,
        "config": BotoConfig(
            connect_timeout=config.probe_timeout,
            read_timeout=config.upload_timeout,
            retries={"max_attempts": 2, "mode": "standard"},
        ),
    }
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if config.access_key_id and config.secret_access_key:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.secret_access_key
        if config.session_token:
            kwargs["aws_session_token"] = config.session_token
    return boto3.client("s3", **kwargs)


class S3Publisher(BasePublisher):
    """Uploads to ``s3://{bucket}/{key}`` with a Content-MD5 integrity check."""

    registry_type: ClassVar[str] = "s3"
    probe_errors: ClassVar[tuple[type[Exception], ...]] = (ClientError, BotoCoreError)

    config: S3Config

    def __init__(self, config: S3Config, client: Any | None = None) -> None:
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> Any:
        # Created lazily so validation errors surface before boto3 is touched.
        if self._client is None:
            self._client = create_s3_client(self.config)
        return self._client

    def location(self, key: str, version: str) -> str:
        return f"s3://{self.config.bucket}/{key}"

    def exists(self, key: str, version: str) -> bool:
        try:
            self.client.head_object(Bucket=self.config.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return False
            raise
        return True

    def upload(self, artifact: Path, key: str, version: str) -> None:
        metadata = {
            "original-filename": artifact.name,
            "upload-timestamp": datetime.now(UTC).isoformat(),
        }
        if version:
            metadata["version"] = version

        try:
            self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=artifact.read_bytes(),
                ContentMD5=md5_base64(artifact),
                ContentType=content_type_for(artifact.name),
                Metadata=metadata,
            )
        except ClientError as e:
            raise self._client_error(e) from e
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise UploadError(f"Failed to upload to S3: timed out ({e})", registry="s3") from e
        except NoCredentialsError as e:
            raise UploadError(
                "Failed to upload to S3: authentication failed. No AWS credentials found.",
                registry="s3",
            ) from e
        except BotoCoreError as e:
            raise UploadError(f"Failed to upload to S3: {e}", registry="s3") from e

    def _client_error(self, error: ClientError) -> UploadError:
        code = error.response.get("Error", {}).get("Code", "")
        metadata = error.response.get("ResponseMetadata", {})
        reason = _ERROR_REASONS.get(code)

        message = f"Failed to upload to S3: {reason or code or 'request failed'}\n{error}"
        if reason == "bucket not found":
            message += f"\nBucket does not exist: {self.config.bucket}"
        elif reason == "access denied":
            message += "\nCheck IAM permissions or credentials."

        return UploadError(
            message,
            registry="s3",
            status_code=metadata.get("HTTPStatusCode"),
            request_id=metadata.get("RequestId"),
        )
