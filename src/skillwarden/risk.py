"""
Update risk scoring and local-modification detection.

Scoring table (additive)::

    change_type == major       +30
    risk score increased       +20
    local modifications        +20
    trust tier == verified     -20
    changelog present          -10
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import StorageError
from .frontmatter import SKILL_FILENAME
from .hashing import hash_file
from .models import ChangeType, Severity, UpdateRisk

logger = logging.getLogger(__name__)

SCORE_MAJOR_CHANGE = 30
SCORE_RISK_DELTA_INCREASE = 20
SCORE_LOCAL_MODIFICATIONS = 20
SCORE_VERIFIED_TRUST = -20
SCORE_HAS_CHANGELOG = -10

TRUST_TIERS = ("verified", "community", "experimental")


def _score_to_level(score: int) -> Severity:
    if score <= 20:
        return Severity.LOW
    if score <= 40:
        return Severity.MEDIUM
    if score <= 60:
        return Severity.HIGH
    return Severity.CRITICAL


def _score_to_recommendation(score: int) -> str:
    if score <= 20:
        return "auto-update"
    if score <= 50:
        return "review-then-update"
    return "manual-review-required"


def compute_update_risk(
    change_type: ChangeType,
    risk_score_delta: Optional[int] = None,
    has_local_modifications: bool = False,
    trust_tier: str = "community",
    has_changelog: bool = False,
) -> UpdateRisk:
    if trust_tier not in TRUST_TIERS:
        raise ValueError(f"Unknown trust tier {trust_tier!r}; expected one of {TRUST_TIERS}")

    score = 0
    if ChangeType(change_type) is ChangeType.MAJOR:
        score += SCORE_MAJOR_CHANGE
    if risk_score_delta is not None and risk_score_delta > 0:
        score += SCORE_RISK_DELTA_INCREASE
    if has_local_modifications:
        score += SCORE_LOCAL_MODIFICATIONS
    if trust_tier == "verified":
        score += SCORE_VERIFIED_TRUST
    if has_changelog:
        score += SCORE_HAS_CHANGELOG

    return UpdateRisk(
        level=_score_to_level(score),
        score=score,
        recommendation=_score_to_recommendation(score),
    )


@dataclass(frozen=True)
class ModificationResult:
    modified: bool
    current_hash: str
    original_hash: str


def detect_modifications(install_path: Path, original_hash: str) -> ModificationResult:
    """Compare the installed SKILL.md against the hash recorded at install time.

    A missing SKILL.md counts as modified (deleted).
    """
    skill_file = Path(install_path) / SKILL_FILENAME
    try:
        current = hash_file(skill_file)
    except FileNotFoundError:
        logger.debug("Installed document %s is missing", skill_file)
        return ModificationResult(modified=True, current_hash="", original_hash=original_hash)
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageError(f"Cannot read installed document {skill_file}: {exc}") from exc
    return ModificationResult(
        modified=current != original_hash,
        current_hash=current,
        original_hash=original_hash,
    )
