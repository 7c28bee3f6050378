"""
Registry version ledger.

Read side of the ``skill_versions`` table: "what is the most recently
recorded version of skill X".  The write methods exist for the registry sync
process; this package itself only reads.
"""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from .database import storage_errors
from .models import ChangeType, VersionRecord
from .semver import is_semver

logger = logging.getLogger(__name__)

DEFAULT_KEEP_COUNT = 50

_COLUMNS = "id, skill_id, content_hash, recorded_at, semver, metadata, change_type"


def _to_epoch(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def _row_to_record(row: sqlite3.Row) -> VersionRecord:
    return VersionRecord(
        id=row["id"],
        skill_id=row["skill_id"],
        content_hash=row["content_hash"],
        recorded_at=datetime.fromtimestamp(int(row["recorded_at"]), tz=timezone.utc),
        semver=row["semver"],
        metadata=row["metadata"],
        change_type=row["change_type"],
    )


class SkillVersionRepository:
    """Queries over the append-only ``skill_versions`` table.

    sqlite failures surface as :class:`~skillwarden.errors.StorageError`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ---- reads -------------------------------------------------------------

    def get_most_recent_version(self, skill_id: str) -> Optional[VersionRecord]:
        """Latest record for *skill_id* by ``recorded_at`` (ties: latest insert)."""
        with storage_errors("version lookup"):
            row = self.conn.execute(
                f"""SELECT {_COLUMNS}
                      FROM skill_versions
                     WHERE skill_id = ?
                     ORDER BY recorded_at DESC, id DESC
                     LIMIT 1""",
                (skill_id,),
            ).fetchone()
        return _row_to_record(row) if row else None

    def find_latest_by_name(self, name: str) -> Optional[VersionRecord]:
        """Latest record whose identity ends in ``/<name>``, across all owners."""
        escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with storage_errors("version lookup"):
            row = self.conn.execute(
                f"""SELECT {_COLUMNS}
                      FROM skill_versions
                     WHERE skill_id LIKE ? ESCAPE '\\'
                     ORDER BY recorded_at DESC, id DESC
                     LIMIT 1""",
                (f"%/{escaped}",),
            ).fetchone()
        return _row_to_record(row) if row else None

    def get_version_history(self, skill_id: str, limit: int = 20) -> List[VersionRecord]:
        with storage_errors("version history"):
            rows = self.conn.execute(
                f"""SELECT {_COLUMNS}
                      FROM skill_versions
                     WHERE skill_id = ?
                     ORDER BY recorded_at DESC, id DESC
                     LIMIT ?""",
                (skill_id, limit),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_version_by_hash(self, skill_id: str, content_hash: str) -> Optional[VersionRecord]:
        with storage_errors("version lookup"):
            row = self.conn.execute(
                f"""SELECT {_COLUMNS}
                      FROM skill_versions
                     WHERE skill_id = ? AND content_hash = ?
                     LIMIT 1""",
                (skill_id, content_hash),
            ).fetchone()
        return _row_to_record(row) if row else None

    def list_tracked_identities(self) -> List[str]:
        with storage_errors("identity listing"):
            rows = self.conn.execute(
                "SELECT DISTINCT skill_id FROM skill_versions ORDER BY skill_id"
            ).fetchall()
        return [r["skill_id"] for r in rows]

    # ---- writes (sync process) ---------------------------------------------

    def record_version(
        self,
        skill_id: str,
        content_hash: str,
        semver: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
        metadata: Optional[str] = None,
        change_type: Optional[ChangeType] = None,
        keep: int = DEFAULT_KEEP_COUNT,
    ) -> None:
        """Record a version; idempotent on ``(skill_id, content_hash)``."""
        epoch = _to_epoch(recorded_at)
        kind = ChangeType(change_type).value if change_type is not None else None
        with storage_errors("version write"):
            if epoch is None:
                self.conn.execute(
                    """INSERT OR IGNORE INTO skill_versions
                           (skill_id, content_hash, semver, metadata, change_type)
                       VALUES (?, ?, ?, ?, ?)""",
                    (skill_id, content_hash, semver, metadata, kind),
                )
            else:
                self.conn.execute(
                    """INSERT OR IGNORE INTO skill_versions
                           (skill_id, content_hash, recorded_at, semver, metadata, change_type)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (skill_id, content_hash, epoch, semver, metadata, kind),
                )
            self.prune_versions(skill_id, keep)
            self.conn.commit()
        logger.debug("Recorded version %s@%s (%s)", skill_id, content_hash[:8], semver)

    def prune_versions(self, skill_id: str, keep: int = DEFAULT_KEEP_COUNT) -> None:
        """Keep only the *keep* most recent rows for *skill_id*."""
        with storage_errors("version prune"):
            self.conn.execute(
                """DELETE FROM skill_versions
                    WHERE skill_id = ?
                      AND id NOT IN (
                          SELECT id FROM skill_versions
                           WHERE skill_id = ?
                           ORDER BY recorded_at DESC, id DESC
                           LIMIT ?
                      )""",
                (skill_id, skill_id, keep),
            )


def usable_semver(record: Optional[VersionRecord]) -> Optional[str]:
    """The record's semver if it is strict ``X.Y.Z``; otherwise ``None``.

    A row with a null or malformed semver is treated exactly like no row.
    """
    if record is None or not is_semver(record.semver):
        return None
    return record.semver
