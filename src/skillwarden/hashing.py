"""
Content identity for skill payloads.

A skill's identity fingerprint is the SHA-256 hex digest of its document
text.  The full 64-character digest is authoritative; the 8-character prefix
is what users see and what pins store.
"""

import hashlib
from pathlib import Path

SHORT_HASH_LENGTH = 8


def compute_hash(content: str) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def short_hash(digest: str) -> str:
    """Truncate a digest to its human-facing prefix.

    Values already at or below the prefix length are returned unchanged.
    """
    return digest[:SHORT_HASH_LENGTH]


def hash_file(path: Path) -> str:
    """Hash the text content of *path* (read as UTF-8)."""
    return compute_hash(path.read_text(encoding="utf-8"))
