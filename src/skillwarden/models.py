"""
Data models for skillwarden.

The manifest models round-trip the on-disk camelCase JSON format and keep
unknown fields so that older and newer tool versions can share one file.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

MANIFEST_FORMAT_VERSION = "1.0.0"


class ChangeType(str, Enum):
    """Coarse magnitude of a change between two skill documents."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Advisory severity levels, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditStatus(str, Enum):
    """Drift status of one bundled skill."""

    CURRENT = "current"
    OUTDATED = "outdated"
    AHEAD = "ahead"
    MISSING_VERSION = "missing_version"
    NO_REGISTRY_DATA = "no_registry_data"


class UpdatePolicy(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    NEVER = "never"


# ─── Manifest ────────────────────────────────────────────────────────────────


class ManifestEntry(BaseModel):
    """One installed skill as recorded in the manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    identity: str = Field(alias="id", description='Skill identity, "<owner>/<name>"')
    display_name: str = Field(alias="name", description="Human-readable label")
    version: Optional[str] = Field(None, description="Declared version (may be non-semantic)")
    source: str = Field("", description="Registry identity or URL used to re-fetch content")
    install_path: str = Field(alias="installPath", description="Absolute install directory")
    installed_at: datetime = Field(alias="installedAt")
    last_updated: datetime = Field(alias="lastUpdated")
    content_hash: Optional[str] = Field(None, alias="contentHash")
    original_content_hash: Optional[str] = Field(None, alias="originalContentHash")
    pinned_version: Optional[str] = Field(None, alias="pinnedVersion")
    update_policy: Optional[UpdatePolicy] = Field(None, alias="updatePolicy")

    @property
    def pin_source_hash(self) -> Optional[str]:
        """Hash a pin would be taken from: current hash first, then original."""
        return self.content_hash or self.original_content_hash

    @property
    def is_pinned(self) -> bool:
        return bool(self.pinned_version)


class Manifest(BaseModel):
    """Top-level manifest document."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: str = MANIFEST_FORMAT_VERSION
    installed_skills: Dict[str, ManifestEntry] = Field(
        default_factory=dict, alias="installedSkills"
    )
    _unparsed_skills: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def unparsed_skills(self) -> Dict[str, Any]:
        """Raw entries that failed validation; written back unchanged."""
        return self._unparsed_skills

    def to_json_dict(self) -> dict:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if self._unparsed_skills:
            skills = dict(self._unparsed_skills)
            skills.update(data["installedSkills"])
            data["installedSkills"] = skills
        return data


# ─── Registry tables ─────────────────────────────────────────────────────────


class VersionRecord(BaseModel):
    """A row of the skill_versions table."""

    id: Optional[int] = None
    skill_id: str
    content_hash: str
    recorded_at: datetime
    semver: Optional[str] = None
    metadata: Optional[str] = None
    change_type: Optional[ChangeType] = None


class Advisory(BaseModel):
    """A published security advisory for one skill identity."""

    id: str = Field(description="SSA-YYYY-NNN advisory identifier")
    skill_id: str
    severity: Severity
    title: str
    description: str
    published_at: str
    affected_versions: Optional[str] = None
    patched_versions: Optional[str] = None
    cwe_ids: Optional[str] = None
    advisory_refs: Optional[str] = None
    withdrawn_at: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def fix_available(self) -> bool:
        return bool(self.patched_versions)

    @property
    def is_active(self) -> bool:
        return self.withdrawn_at is None


class AdvisorySummary(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0


# ─── Drift audit ─────────────────────────────────────────────────────────────


class AuditResult(BaseModel):
    """Drift classification of one bundled skill."""

    name: str
    bundled_version: Optional[str] = None
    registry_version: Optional[str] = None
    skill_identity: Optional[str] = None
    status: AuditStatus
    error: Optional[str] = Field(None, description="Why the skill document could not be read")


class PackAuditReport(BaseModel):
    """Per-skill results plus pack-level counts."""

    pack_path: str
    skill_count: int = 0
    drift_count: int = 0
    no_registry_data_count: int = 0
    skills: List[AuditResult] = Field(default_factory=list)


# ─── Diff / updates ──────────────────────────────────────────────────────────


class SectionDiff(BaseModel):
    """Section-level differences, headings in original case."""

    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)

    @property
    def is_empty(self) -> bool:
        return self.total_changes == 0


class UpdateRisk(BaseModel):
    level: Severity
    score: int
    recommendation: str


class DiffResult(BaseModel):
    """Outcome of comparing two versions of a skill document."""

    skill: str
    change_type: ChangeType
    sections: SectionDiff
    old_hash: str
    new_hash: str
    risk: Optional[UpdateRisk] = None


class SkillUpdateInfo(BaseModel):
    skill_id: str
    installed_hash: Optional[str] = None
    latest_hash: Optional[str] = None
    semver: Optional[str] = None
    age_days: Optional[int] = None
    pinned: bool = False
    pinned_version: Optional[str] = None
    update_available: bool = False


class UpdateReport(BaseModel):
    updates_available: int = 0
    skills: List[SkillUpdateInfo] = Field(default_factory=list)
