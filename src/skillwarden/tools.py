"""
FastMCP tools for skill integrity and version drift.
"""

import json
from pathlib import Path
from typing import List, Optional

from .advisories import fixable_skills, summarize
from .pinning import pin_skill, unpin_skill
from .reports import format_advisories, format_diff, format_pack_audit, format_updates
from .sources import diff_skill
from .tools_base import Tool
from .updates import check_updates
from .workspace import Workspace


class WorkspaceTool(Tool):
    """Tool bound to a shared :class:`Workspace`."""

    def __init__(self, workspace: Optional[Workspace] = None):
        self._workspace = workspace

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            self._workspace = Workspace()
        return self._workspace


class SkillPinTool(WorkspaceTool):
    """Pin an installed skill to its current content hash."""

    def apply(self, skill_id: str) -> str:
        """
        Pin an installed skill so updates leave it at its current version.

        Args:
            skill_id: Installed skill identity (owner/name)

        Returns:
            Confirmation with the 8-character pinned hash
        """
        pinned = pin_skill(self.workspace.manifest_store(), skill_id)
        return f"Pinned {skill_id} at {pinned}"


class SkillUnpinTool(WorkspaceTool):
    """Remove the pin from an installed skill."""

    def apply(self, skill_id: str) -> str:
        """
        Remove the version pin from an installed skill.

        Args:
            skill_id: Installed skill identity (owner/name)

        Returns:
            Confirmation, or a note that the skill was not pinned
        """
        previous = unpin_skill(self.workspace.manifest_store(), skill_id)
        if previous is None:
            return f"{skill_id} is not pinned"
        return f"Unpinned {skill_id} (was {previous})"


class SkillDiffTool(WorkspaceTool):
    """Section-level diff between installed and latest skill content."""

    def apply(
        self,
        skill_id: str,
        old_content_path: Optional[str] = None,
        new_content_path: Optional[str] = None,
    ) -> str:
        """
        Show which SKILL.md sections were added, removed or modified between
        the installed copy and the latest published version.

        Args:
            skill_id: Installed skill identity (owner/name)
            old_content_path: Read the old document from this file instead of the installed copy
            new_content_path: Read the new document from this file instead of fetching it

        Returns:
            Change classification, section lists and update risk
        """
        result = diff_skill(
            self.workspace.resolver(),
            skill_id,
            old_override=Path(old_content_path) if old_content_path else None,
            new_override=Path(new_content_path) if new_content_path else None,
        )
        return format_diff(result)


class SkillPackAuditTool(WorkspaceTool):
    """Compare bundled skill versions in a pack against the registry."""

    def apply(self, pack_path: str) -> str:
        """
        Audit a skill pack for version drift against the local registry cache.

        Args:
            pack_path: Pack directory containing a skills/ subdirectory

        Returns:
            Per-skill status (current, outdated, ahead, no_registry_data,
            missing_version) and pack-level counts
        """
        report = self.workspace.auditor().audit_pack(pack_path)
        return format_pack_audit(report)


class SkillAuditTool(WorkspaceTool):
    """Check skills for active security advisories."""

    def apply(self, skill_ids: Optional[List[str]] = None, as_json: bool = False) -> str:
        """
        Check skills for known security advisories.

        Args:
            skill_ids: Specific skill identities to check (omit for all active advisories)
            as_json: Return a JSON document instead of text

        Returns:
            Severity counts and one line per advisory
        """
        repo = self.workspace.advisories()
        if skill_ids:
            found = repo.get_advisories_for_many(skill_ids)
        else:
            found = repo.get_active_advisories()

        if as_json:
            return json.dumps(
                {
                    "advisories_available": bool(found),
                    "summary": summarize(found).model_dump(),
                    "advisories": [
                        {
                            "skill_id": a.skill_id,
                            "severity": a.severity.value,
                            "title": a.title,
                            "id": a.id,
                            "fix_available": a.fix_available,
                        }
                        for a in found
                    ],
                    "fixable_skills": fixable_skills(found),
                },
                indent=2,
            )
        return format_advisories(found)


class SkillUpdatesTool(WorkspaceTool):
    """Report which installed skills have newer registry versions."""

    def apply(self, skill_ids: Optional[List[str]] = None) -> str:
        """
        Check installed skills for updates. Pinned skills never report an update.

        Args:
            skill_ids: Only check these skill identities (omit for all installed skills)

        Returns:
            Installed and latest hashes per skill with update availability
        """
        report = check_updates(
            self.workspace.manifest_store(), self.workspace.ledger(), skill_ids
        )
        return format_updates(report)
