"""File checksums used for integrity headers and content-addressed keys."""

from __future__ import annotations

import base64
import hashlib
from pathlib import Path
from typing import Literal

from monorelease.exceptions import ProjectError

Algorithm = Literal["sha1", "sha256", "md5"]

_CHUNK_SIZE = 1024 * 1024


def file_checksum(path: Path, algorithm: Algorithm | Literal["none"] = "sha1") -> str | None:
    """Hex digest of the file at ``path``; None for algorithm ``none``.

    Raises:
        ProjectError: If the file does not exist
    """
    if algorithm == "none":
        return None
    if not path.is_file():
        raise ProjectError(f"File not found: {path}")

    digest = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def file_checksums(path: Path, algorithms: list[Algorithm]) -> dict[str, str]:
    """Several hex digests at once, keyed by algorithm name."""
    checksums: dict[str, str] = {}
    for algorithm in algorithms:
        value = file_checksum(path, algorithm)
        if value:
            checksums[algorithm] = value
    return checksums


def md5_base64(path: Path) -> str:
    """Base64 MD5 digest, the encoding S3 expects in Content-MD5."""
    hex_digest = file_checksum(path, "md5")
    return base64.b64encode(bytes.fromhex(hex_digest or "")).decode("ascii")
