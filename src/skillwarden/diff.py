"""
Section-level diffing of skill documents.

Documents are split on H2/H3 headings.  A section's body runs from its
heading to the next heading of the same or a higher level, so an H2 section
includes the text of its H3 subsections.  Headings inside fenced code blocks
are ignored.  Keys are case-folded, trimmed heading text; the original
spelling is kept for display.

The change classification (major/minor/patch) is a display label produced by
a pluggable classifier and never affects the diff itself.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from .frontmatter import split_frontmatter
from .hashing import compute_hash
from .models import ChangeType, DiffResult, SectionDiff, UpdateRisk
from .semver import parse_loose_semver

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{2,3})\s+(.+?)\s*$")
_ANY_HEADING_RE = re.compile(r"^#{1,3}\s+")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_DEPS_HEADING_RE = re.compile(r"^#{1,3}\s+(dependencies|requirements|requires)\b", re.IGNORECASE)
_LIST_ITEM_RE = re.compile(r"^[-*]\s+(\S+)")

Classifier = Callable[[str, str], ChangeType]


@dataclass(frozen=True)
class Section:
    title: str
    level: int
    body: str


def _iter_lines_outside_fences(content: str) -> Iterator[Tuple[str, bool]]:
    """Yield (line, in_fence) pairs, toggling on ``` / ~~~ fence markers."""
    fence: Optional[str] = None
    for line in content.split("\n"):
        match = _FENCE_RE.match(line)
        if match:
            marker = match.group(1)
            if fence is None:
                fence = marker
                yield line, True
                continue
            if marker == fence:
                fence = None
                yield line, True
                continue
        yield line, fence is not None


def _normalise(title: str) -> str:
    return title.strip().casefold()


def extract_sections(content: str) -> Dict[str, Section]:
    """Map normalised heading text to its :class:`Section`.

    When a heading repeats, the later occurrence wins but keeps the position
    of the first.
    """
    sections: Dict[str, Section] = {}
    order: List[str] = []
    open_sections: List[Tuple[str, str, int, List[str]]] = []

    def _close(min_level: int) -> None:
        while open_sections and open_sections[-1][2] >= min_level:
            key, title, level, lines = open_sections.pop()
            sections[key] = Section(title=title, level=level, body="\n".join(lines).strip())

    for line, in_fence in _iter_lines_outside_fences(content.replace("\r\n", "\n")):
        match = None if in_fence else _HEADING_RE.match(line)
        if match:
            level = len(match.group(1))
            title = match.group(2).strip()
            key = _normalise(title)
            _close(level)
            # Parents still open include this heading in their body.
            for _key, _title, _level, lines in open_sections:
                lines.append(line)
            open_sections.append((key, title, level, []))
            if key not in order:
                order.append(key)
            continue
        for _key, _title, _level, lines in open_sections:
            lines.append(line)
    _close(0)

    return {key: sections[key] for key in order}


def diff_sections(old_content: str, new_content: str) -> SectionDiff:
    """Compare two documents section by section.

    A renamed heading shows up as one removal plus one addition, never as a
    modification.
    """
    old_sections = extract_sections(old_content)
    new_sections = extract_sections(new_content)

    removed = [s.title for key, s in old_sections.items() if key not in new_sections]
    added = [s.title for key, s in new_sections.items() if key not in old_sections]
    modified = [
        s.title
        for key, s in new_sections.items()
        if key in old_sections and old_sections[key].body != s.body
    ]
    return SectionDiff(added=added, removed=removed, modified=modified)


# ─── Change classification ───────────────────────────────────────────────────


def _heading_keys(content: str) -> Set[str]:
    return set(extract_sections(content).keys())


def _extract_semver(metadata: Optional[dict]) -> Optional[Tuple[int, int, int]]:
    if not metadata:
        return None
    raw = metadata.get("version", metadata.get("semver"))
    return parse_loose_semver(str(raw)) if raw is not None else None


def extract_dependencies(content: str) -> Set[str]:
    """Dependency names from front-matter and from a Dependencies section.

    Front-matter keys ``dependencies`` / ``requires`` may be a list or a
    comma-separated string; in the body, list items directly under a
    Dependencies/Requirements/Requires heading count.
    """
    deps: Set[str] = set()
    metadata, body = split_frontmatter(content)

    raw = (metadata or {}).get("dependencies", (metadata or {}).get("requires"))
    if isinstance(raw, str):
        raw = raw.strip("[]").split(",")
    if isinstance(raw, list):
        for item in raw:
            name = str(item).strip().strip("'\"")
            if name:
                deps.add(name.lower())

    in_deps = False
    for line, in_fence in _iter_lines_outside_fences(body):
        if not in_fence and _DEPS_HEADING_RE.match(line):
            in_deps = True
            continue
        if not in_fence and _ANY_HEADING_RE.match(line):
            in_deps = False
            continue
        if in_deps:
            match = _LIST_ITEM_RE.match(line.strip())
            if match:
                deps.add(match.group(1).lower())
    return deps


def _classify_by_semver(old: Tuple[int, int, int], new: Tuple[int, int, int]) -> ChangeType:
    if new[0] != old[0]:
        return ChangeType.MAJOR
    if new[1] != old[1]:
        return ChangeType.MINOR
    return ChangeType.PATCH


def classify_change(
    old_content: str,
    new_content: str,
    old_risk_score: Optional[int] = None,
    new_risk_score: Optional[int] = None,
) -> ChangeType:
    """Heuristic major/minor/patch label for a document change.

    Precedence: a differing author-declared semver wins; then removed
    headings, a risk-score jump of more than 20, or removed dependencies mean
    major; added headings or dependencies mean minor; anything else is patch.
    """
    try:
        old_meta, _ = split_frontmatter(old_content)
        new_meta, _ = split_frontmatter(new_content)
        old_semver = _extract_semver(old_meta)
        new_semver = _extract_semver(new_meta)
        if old_semver and new_semver and old_semver != new_semver:
            return _classify_by_semver(old_semver, new_semver)

        old_headings = _heading_keys(old_content)
        new_headings = _heading_keys(new_content)
        if old_headings - new_headings:
            return ChangeType.MAJOR

        if (
            old_risk_score is not None
            and new_risk_score is not None
            and new_risk_score - old_risk_score > 20
        ):
            return ChangeType.MAJOR

        old_deps = extract_dependencies(old_content)
        new_deps = extract_dependencies(new_content)
        if old_deps - new_deps:
            return ChangeType.MAJOR

        if new_headings - old_headings or new_deps - old_deps:
            return ChangeType.MINOR
        return ChangeType.PATCH
    except Exception as exc:  # noqa: BLE001
        logger.warning("Change classification failed: %s", exc)
        return ChangeType.UNKNOWN


def diff_documents(
    skill: str,
    old_content: str,
    new_content: str,
    classifier: Optional[Classifier] = classify_change,
    risk: Optional[UpdateRisk] = None,
) -> DiffResult:
    """Diff two documents and attach a change label.

    The section diff is always computed; a missing or failing classifier only
    downgrades the label to ``unknown``.
    """
    sections = diff_sections(old_content, new_content)
    change_type = ChangeType.UNKNOWN
    if classifier is not None:
        try:
            change_type = ChangeType(classifier(old_content, new_content))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Classifier failed for %s: %s", skill, exc)
    logger.debug(
        "diff %s: +%d -%d ~%d (%s)",
        skill, len(sections.added), len(sections.removed), len(sections.modified),
        change_type.value,
    )
    return DiffResult(
        skill=skill,
        change_type=change_type,
        sections=sections,
        old_hash=compute_hash(old_content),
        new_hash=compute_hash(new_content),
        risk=risk,
    )
