"""
Skill pack drift audit.

A pack is a directory with a ``skills/`` subdirectory holding one folder per
bundled skill, each with a ``SKILL.md``.  Every bundled version is compared
with the most recent version the registry ledger knows about.

Status values:

* ``current``          -- bundled version equals the registry version
* ``outdated``         -- registry has a newer version
* ``ahead``            -- bundled version is newer than the registry's
* ``no_registry_data`` -- no ledger record with a usable semver
* ``missing_version``  -- SKILL.md declares no strict ``X.Y.Z`` version
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from .errors import InvalidPathError, PackNotFoundError
from .frontmatter import SKILL_FILENAME, parse_skill_header, read_skill_document
from .ledger import SkillVersionRepository, usable_semver
from .models import AuditResult, AuditStatus, PackAuditReport, VersionRecord
from .semver import compare_semver, is_semver

logger = logging.getLogger(__name__)

SKILLS_SUBDIR = "skills"

_PATH_TRAVERSAL_PATTERNS = [
    re.compile(r"(^|[\\/])\.\.([\\/]|$)"),
    re.compile(r"%2e%2e", re.IGNORECASE),
    re.compile(r"%252e", re.IGNORECASE),
    re.compile(r"\x00"),
]


def has_path_traversal(path: str) -> bool:
    return any(p.search(path) for p in _PATH_TRAVERSAL_PATTERNS)


class DriftAuditor:
    """Compares bundled skill versions against the registry ledger.

    With a *namespace*, a bundled skill ``name`` maps to identity
    ``<namespace>/<name>``.  Without one, the latest ledger record for any
    owner's ``*/<name>`` is used.
    """

    def __init__(self, ledger: SkillVersionRepository, namespace: Optional[str] = None) -> None:
        self.ledger = ledger
        self.namespace = namespace.strip("/") if namespace else None

    def resolve_identity(self, name: str) -> Optional[str]:
        if self.namespace:
            return f"{self.namespace}/{name}"
        return None

    def _lookup(self, name: str) -> Optional[VersionRecord]:
        identity = self.resolve_identity(name)
        if identity is not None:
            return self.ledger.get_most_recent_version(identity)
        return self.ledger.find_latest_by_name(name)

    def audit_skill(self, skill_dir: Path) -> Optional[AuditResult]:
        """Audit one bundled skill; ``None`` if the folder has no SKILL.md."""
        content = read_skill_document(skill_dir)
        if content is None:
            return None

        header = parse_skill_header(content)
        name = (header.name if header else None) or skill_dir.name
        raw_version = header.version if header else None
        bundled = raw_version if is_semver(raw_version) else None

        if bundled is None:
            if raw_version:
                logger.debug("Skill %s declares non-semver version %r", name, raw_version)
            return AuditResult(
                name=name,
                skill_identity=self.resolve_identity(name),
                status=AuditStatus.MISSING_VERSION,
            )

        record = self._lookup(name)
        registry = usable_semver(record)
        identity = record.skill_id if record is not None else self.resolve_identity(name)
        if registry is None:
            return AuditResult(
                name=name,
                bundled_version=bundled,
                skill_identity=identity,
                status=AuditStatus.NO_REGISTRY_DATA,
            )

        cmp = compare_semver(bundled, registry)
        if cmp == 0:
            status = AuditStatus.CURRENT
        elif cmp < 0:
            status = AuditStatus.OUTDATED
        else:
            status = AuditStatus.AHEAD
        return AuditResult(
            name=name,
            bundled_version=bundled,
            registry_version=registry,
            skill_identity=identity,
            status=status,
        )

    def audit_pack(self, pack_path: Union[str, Path]) -> PackAuditReport:
        """Audit every bundled skill under ``<pack_path>/skills``.

        Raises :class:`InvalidPathError` for traversal sequences (before any
        filesystem access) and :class:`PackNotFoundError` when the skills
        directory is missing or unreadable.  A skill whose document cannot be
        read is reported with an ``error`` and does not stop the audit.
        """
        if has_path_traversal(str(pack_path)):
            raise InvalidPathError("pack_path contains a path traversal pattern")

        pack = Path(pack_path).expanduser().resolve()
        skills_dir = pack / SKILLS_SUBDIR
        try:
            children = sorted(c for c in skills_dir.iterdir() if c.is_dir())
        except OSError as exc:
            raise PackNotFoundError(skills_dir) from exc

        results: List[AuditResult] = []
        for child in children:
            try:
                result = self.audit_skill(child)
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                logger.warning("Cannot audit %s: %s", child / SKILL_FILENAME, exc)
                result = AuditResult(
                    name=child.name,
                    status=AuditStatus.MISSING_VERSION,
                    error=str(exc),
                )
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: r.name)
        report = PackAuditReport(
            pack_path=str(pack),
            skill_count=len(results),
            drift_count=sum(
                1 for r in results if r.status in (AuditStatus.OUTDATED, AuditStatus.AHEAD)
            ),
            no_registry_data_count=sum(
                1 for r in results if r.status == AuditStatus.NO_REGISTRY_DATA
            ),
            skills=results,
        )
        logger.info(
            "Audited pack %s: %d skills, %d drifted, %d without registry data",
            report.pack_path, report.skill_count, report.drift_count,
            report.no_registry_data_count,
        )
        return report
