"""
Security advisory matching.

Reads the ``skill_advisories`` table.  An advisory is active while
``withdrawn_at`` is NULL.  Results come back newest-published first; any
further presentation ordering belongs to the caller.
"""

import logging
import sqlite3
from typing import Iterable, List, Optional

from .database import storage_errors
from .models import Advisory, AdvisorySummary, Severity

logger = logging.getLogger(__name__)

_COLUMNS = """id, skill_id, severity, title, description,
              affected_versions, patched_versions, cwe_ids, advisory_refs,
              published_at, withdrawn_at, created_at"""


def _row_to_advisory(row: sqlite3.Row) -> Advisory:
    return Advisory(**{key: row[key] for key in row.keys()})


class AdvisoryRepository:
    """Queries over ``skill_advisories``."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get_active_advisories(self, severity: Optional[Severity] = None) -> List[Advisory]:
        """All active advisories, optionally restricted to one severity."""
        with storage_errors("advisory query"):
            if severity is not None:
                rows = self.conn.execute(
                    f"""SELECT {_COLUMNS}
                          FROM skill_advisories
                         WHERE withdrawn_at IS NULL AND severity = ?
                         ORDER BY published_at DESC""",
                    (Severity(severity).value,),
                ).fetchall()
            else:
                rows = self.conn.execute(
                    f"""SELECT {_COLUMNS}
                          FROM skill_advisories
                         WHERE withdrawn_at IS NULL
                         ORDER BY published_at DESC"""
                ).fetchall()
        return [_row_to_advisory(r) for r in rows]

    def get_advisories_for(self, skill_id: str) -> List[Advisory]:
        """Active advisories for one skill identity."""
        with storage_errors("advisory query"):
            rows = self.conn.execute(
                f"""SELECT {_COLUMNS}
                      FROM skill_advisories
                     WHERE skill_id = ? AND withdrawn_at IS NULL
                     ORDER BY published_at DESC""",
                (skill_id,),
            ).fetchall()
        return [_row_to_advisory(r) for r in rows]

    def get_advisories_for_many(self, skill_ids: Iterable[str]) -> List[Advisory]:
        results: List[Advisory] = []
        for skill_id in skill_ids:
            results.extend(self.get_advisories_for(skill_id))
        return results

    # ---- writes (sync process) ---------------------------------------------

    def upsert_advisory(self, advisory: Advisory) -> None:
        """Insert or replace by advisory id."""
        with storage_errors("advisory write"):
            self.conn.execute(
                """INSERT OR REPLACE INTO skill_advisories
                       (id, skill_id, severity, title, description,
                        affected_versions, patched_versions, cwe_ids, advisory_refs,
                        published_at, withdrawn_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    advisory.id,
                    advisory.skill_id,
                    advisory.severity.value,
                    advisory.title,
                    advisory.description,
                    advisory.affected_versions,
                    advisory.patched_versions,
                    advisory.cwe_ids,
                    advisory.advisory_refs,
                    advisory.published_at,
                    advisory.withdrawn_at,
                ),
            )
            self.conn.commit()
        logger.debug("Upserted advisory %s for %s", advisory.id, advisory.skill_id)

    def withdraw_advisory(self, advisory_id: str) -> None:
        with storage_errors("advisory write"):
            self.conn.execute(
                "UPDATE skill_advisories SET withdrawn_at = datetime('now') WHERE id = ?",
                (advisory_id,),
            )
            self.conn.commit()


def summarize(advisories: Iterable[Advisory]) -> AdvisorySummary:
    """Count advisories per severity."""
    summary = AdvisorySummary()
    for adv in advisories:
        setattr(summary, adv.severity.value, getattr(summary, adv.severity.value) + 1)
        summary.total += 1
    return summary


def fixable_skills(advisories: Iterable[Advisory]) -> List[str]:
    """Distinct skill identities with at least one patched advisory, in first-seen order."""
    seen: List[str] = []
    for adv in advisories:
        if adv.fix_available and adv.skill_id not in seen:
            seen.append(adv.skill_id)
    return seen
