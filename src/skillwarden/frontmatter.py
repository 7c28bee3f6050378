"""
SKILL.md front-matter parsing.

A skill document optionally starts with a YAML block delimited by ``---``
lines.  :func:`parse_skill_header` reduces it to a typed
:class:`SkillHeader`; "no block" and "block is not valid YAML mapping" are the
same outcome (``None``), so callers have a single case to handle.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
FRONTMATTER_DELIMITER = "---"

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


@dataclass(frozen=True)
class SkillHeader:
    """Name and version declared in a skill document's front-matter."""

    name: Optional[str] = None
    version: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)


def _scalar_text(value: Any) -> Optional[str]:
    """Render a YAML scalar as text; lists, maps and empties become ``None``."""
    if value is None or isinstance(value, (bool, list, dict)):
        return None
    text = str(value).strip()
    return text or None


def split_frontmatter(content: str) -> Tuple[Optional[Dict[str, Any]], str]:
    """Split *content* into (metadata, body).

    ``metadata`` is ``None`` when there is no front-matter block (the body is
    then the whole document) or when the block does not parse to a mapping.
    """
    stripped = content.lstrip("\ufeff").lstrip()
    match = _FRONTMATTER_RE.match(stripped)
    if not match:
        return None, content
    body = stripped[match.end():]
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.debug("Invalid YAML front-matter: %s", exc)
        return None, body
    if not isinstance(data, dict):
        return None, body
    return data, body


def parse_skill_header(content: str) -> Optional[SkillHeader]:
    """Extract the declared name and version from *content*."""
    metadata, _body = split_frontmatter(content)
    if metadata is None:
        return None
    return SkillHeader(
        name=_scalar_text(metadata.get("name")),
        version=_scalar_text(metadata.get("version")),
        metadata=metadata,
    )


def read_skill_document(skill_dir: Path) -> Optional[str]:
    """Return the SKILL.md text in *skill_dir*, or ``None`` if there is none.

    Read errors other than absence (permissions, bad encoding) propagate.
    """
    skill_file = skill_dir / SKILL_FILENAME
    if not skill_file.is_file():
        return None
    return skill_file.read_text(encoding="utf-8")
