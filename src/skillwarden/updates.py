"""Update availability for installed skills, honouring pins."""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from .hashing import short_hash
from .ledger import SkillVersionRepository
from .manifest import ManifestStore
from .models import SkillUpdateInfo, UpdateReport

logger = logging.getLogger(__name__)


def check_updates(
    store: ManifestStore,
    ledger: SkillVersionRepository,
    identities: Optional[Iterable[str]] = None,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> UpdateReport:
    """Compare each installed skill's hash with the ledger's latest record.

    A pinned skill never reports an update.  Skills named in *identities*
    but absent from the manifest are skipped.
    """
    manifest = store.load()
    wanted = list(identities) if identities else sorted(manifest.installed_skills)
    current_time = now()

    infos: List[SkillUpdateInfo] = []
    for identity in wanted:
        entry = manifest.installed_skills.get(identity)
        if entry is None:
            logger.debug("Skipping %s: not in manifest", identity)
            continue

        installed = entry.pin_source_hash
        latest = ledger.get_most_recent_version(identity)
        info = SkillUpdateInfo(
            skill_id=identity,
            installed_hash=short_hash(installed) if installed else None,
            pinned=entry.is_pinned,
            pinned_version=entry.pinned_version,
        )
        if latest is not None:
            info.latest_hash = short_hash(latest.content_hash)
            info.semver = latest.semver
            info.age_days = max(0, (current_time - latest.recorded_at).days)
            changed = installed is None or latest.content_hash != installed
            info.update_available = changed and not entry.is_pinned
        infos.append(info)

    report = UpdateReport(
        updates_available=sum(1 for i in infos if i.update_available),
        skills=infos,
    )
    logger.info("Update check: %d of %d skills have updates", report.updates_available, len(infos))
    return report
