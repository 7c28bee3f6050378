"""
Plain-text rendering shared by the CLI and the MCP tools.
"""

from typing import List, Optional

from .advisories import fixable_skills, summarize
from .models import Advisory, DiffResult, PackAuditReport, UpdateReport

NO_ADVISORIES_MESSAGE = (
    "No active security advisories in the local registry cache. "
    "Advisories appear here once the registry sync has fetched them."
)

_SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def format_diff(result: DiffResult) -> str:
    lines = [
        f"Diff for {result.skill} ({result.change_type.value} change)",
        f"  old: {result.old_hash[:8]}  new: {result.new_hash[:8]}",
    ]
    sections = result.sections
    if sections.is_empty:
        lines.append("No section changes.")
    else:
        for label, titles in (
            ("Added", sections.added),
            ("Removed", sections.removed),
            ("Modified", sections.modified),
        ):
            if titles:
                lines.append(f"{label} sections ({len(titles)}):")
                lines.extend(f"  - {t}" for t in titles)
    if result.risk is not None:
        lines.append(
            f"Update risk: {result.risk.level.value} (score {result.risk.score}), "
            f"recommendation: {result.risk.recommendation}"
        )
    return "\n".join(lines)


def format_pack_audit(report: PackAuditReport) -> str:
    lines = [
        f"Pack: {report.pack_path}",
        f"Skills: {report.skill_count}  drifted: {report.drift_count}  "
        f"no registry data: {report.no_registry_data_count}",
    ]
    if not report.skills:
        lines.append("No skills found in pack.")
        return "\n".join(lines)

    width = max(len(r.name) for r in report.skills)
    for r in report.skills:
        row = (
            f"  {r.name.ljust(width)}  {r.status.value:<16}  "
            f"bundled={r.bundled_version or '-'}  registry={r.registry_version or '-'}"
        )
        if r.error:
            row += f"  ({r.error})"
        lines.append(row)
    return "\n".join(lines)


def format_advisories(advisories: List[Advisory], empty_message: Optional[str] = None) -> str:
    if not advisories:
        return empty_message or NO_ADVISORIES_MESSAGE

    summary = summarize(advisories)
    lines = [
        f"{summary.total} active advisories: {summary.critical} critical, "
        f"{summary.high} high, {summary.medium} medium, {summary.low} low",
    ]
    ordered = sorted(advisories, key=lambda a: _SEVERITY_ORDER[a.severity.value])
    for adv in ordered:
        lines.append(f"  [{adv.severity.value.upper()}] {adv.id} {adv.skill_id}: {adv.title}")
        lines.append(f"      {remediation_hint(adv)}")
    return "\n".join(lines)


def remediation_hint(advisory: Advisory) -> str:
    if not advisory.fix_available:
        return "No fix available"
    return (
        f"Fix: update {advisory.skill_id} to {advisory.patched_versions} "
        f"(check with: skillwarden updates {advisory.skill_id})"
    )


def format_fixable(advisories: List[Advisory]) -> str:
    """Skills whose advisories have a patched version, one command per line."""
    skills = fixable_skills(advisories)
    if not skills:
        return "No fixable advisories found."
    lines = [f"{len(skills)} skills have a patched version available:"]
    lines.extend(f"  skillwarden updates {skill_id}" for skill_id in skills)
    return "\n".join(lines)


def format_updates(report: UpdateReport) -> str:
    if not report.skills:
        return "No installed skills to check."

    lines = [f"{report.updates_available} of {len(report.skills)} skills have updates available"]
    for info in report.skills:
        if info.latest_hash is None:
            state = "no registry data"
        elif info.update_available:
            state = f"update available -> {info.latest_hash}"
            if info.semver:
                state += f" (v{info.semver})"
        elif info.pinned and info.installed_hash != info.latest_hash:
            state = f"pinned at {info.pinned_version}, latest {info.latest_hash}"
        else:
            state = "up to date"
        if info.age_days is not None:
            state += f", recorded {info.age_days}d ago"
        lines.append(f"  {info.skill_id}  {info.installed_hash or '-'}  {state}")
    return "\n".join(lines)
