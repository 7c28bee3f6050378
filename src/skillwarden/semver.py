"""Strict ``MAJOR.MINOR.PATCH`` version handling (no pre-release or build tags)."""

import re
from typing import Optional, Tuple

SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_LOOSE_SEMVER_RE = re.compile(r"^\s*v?(\d+)\.(\d+)\.(\d+)")

VersionTuple = Tuple[int, int, int]


def parse_semver(text: Optional[str]) -> Optional[VersionTuple]:
    """Parse a strict ``X.Y.Z`` string; anything else yields ``None``."""
    if not text:
        return None
    match = SEMVER_RE.fullmatch(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def is_semver(text: Optional[str]) -> bool:
    return parse_semver(text) is not None


def parse_loose_semver(text: Optional[str]) -> Optional[VersionTuple]:
    """Accept an optional ``v`` prefix and trailing qualifiers (``v1.2.3-rc1``)."""
    if not text:
        return None
    match = _LOOSE_SEMVER_RE.match(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def compare_semver(a: str, b: str) -> int:
    """Return 1 if a > b, -1 if a < b, 0 if equal.

    Both arguments must be strict semver strings.
    """
    pa = parse_semver(a)
    pb = parse_semver(b)
    if pa is None or pb is None:
        raise ValueError(f"Not a semantic version: {a if pa is None else b!r}")
    return (pa > pb) - (pa < pb)
