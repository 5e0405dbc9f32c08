"""Content fingerprints used to identify screenshot files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

CHUNK_SIZE = 64 * 1024


def fingerprint(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(file_path: str | os.PathLike[str]) -> str:
    """Calculate the SHA-256 hex digest of a file without reading it all at once."""
    sha256_hash = hashlib.sha256()
    with Path(file_path).open("rb") as f:
        for byte_block in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()
