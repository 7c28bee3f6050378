"""
Wires settings into the core objects for the command boundary.
"""

import logging
import sqlite3
from typing import Optional

from .advisories import AdvisoryRepository
from .auditor import DriftAuditor
from .database import open_database
from .ledger import SkillVersionRepository
from .lock import ManifestLock
from .manifest import ManifestStore
from .settings import Settings, get_settings
from .sources import ContentResolver, Fetcher

logger = logging.getLogger(__name__)


class Workspace:
    """Lazily opened manifest store and registry cache for one process."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._conn: Optional[sqlite3.Connection] = None

    def manifest_store(self) -> ManifestStore:
        s = self.settings
        lock = ManifestLock(
            ManifestStore.lock_path_for(s.manifest_path),
            stale_seconds=s.lock_stale_seconds,
            retry_interval=s.lock_retry_interval_ms / 1000.0,
            max_attempts=s.lock_max_attempts,
        )
        return ManifestStore(s.manifest_path, lock=lock)

    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = open_database(self.settings.database_path)
        return self._conn

    def ledger(self) -> SkillVersionRepository:
        return SkillVersionRepository(self.connection())

    def advisories(self) -> AdvisoryRepository:
        return AdvisoryRepository(self.connection())

    def auditor(self) -> DriftAuditor:
        return DriftAuditor(self.ledger(), namespace=self.settings.namespace)

    def resolver(self, fetcher: Optional[Fetcher] = None) -> ContentResolver:
        return ContentResolver(
            self.manifest_store(),
            self.settings.skills_dir,
            fetcher=fetcher,
            default_branch=self.settings.default_branch,
            timeout=self.settings.fetch_timeout_seconds,
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Closed registry cache")

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
