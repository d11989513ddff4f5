"""Content fingerprints used as cache keys and README line checksums."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Tuple

DIGEST_SIZE = 64  # hex characters of a SHA-256 digest

_CHUNK_SIZE = 1024 * 1024


def fingerprint(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_text(text: str) -> str:
    return fingerprint(text.encode("utf-8"))


def fingerprint_file(path: Path) -> str:
    """Hash a file without loading it at once. I/O errors propagate."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint_of_children(pairs: Iterable[Tuple[str, str]]) -> str:
    """Combine ``(child_name, child_digest)`` pairs into a directory digest.

    Pairs are sorted by name first, so the order of a directory listing never
    changes the result. Every field is length-prefixed so that names and
    digests cannot run into each other.
    """
    digest = hashlib.sha256()
    digest.update(b"dir\0")
    for name, child_digest in sorted(pairs):
        name_bytes = name.encode("utf-8")
        child_bytes = child_digest.encode("ascii")
        digest.update(len(name_bytes).to_bytes(4, "big"))
        digest.update(name_bytes)
        digest.update(len(child_bytes).to_bytes(4, "big"))
        digest.update(child_bytes)
    return digest.hexdigest()


__all__ = [
    "DIGEST_SIZE",
    "fingerprint",
    "fingerprint_file",
    "fingerprint_of_children",
    "fingerprint_text",
]
