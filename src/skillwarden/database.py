"""
Local registry cache (SQLite).

Two read-mostly tables are populated by the registry sync process and read
by this package:

* ``skill_versions`` -- append-only history of content hashes observed per
  skill identity (``recorded_at`` in Unix epoch seconds).
* ``skill_advisories`` -- published security advisories.

``_SCHEMA`` is the source of truth.  ``CREATE TABLE IF NOT EXISTS`` handles
new databases and :func:`_ensure_columns` adds columns that older databases
are missing.  ``skill_id`` is a soft reference (no foreign key) so history
outlives a skill's removal from the registry.
"""

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Tuple, Union

from .errors import StorageError

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS skill_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    skill_id TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    recorded_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
    semver TEXT,
    metadata TEXT,
    change_type TEXT CHECK (change_type IN ('major', 'minor', 'patch', 'unknown'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_skill_versions_skill_hash
    ON skill_versions(skill_id, content_hash);
CREATE INDEX IF NOT EXISTS idx_skill_versions_skill_recorded
    ON skill_versions(skill_id, recorded_at DESC);

CREATE TABLE IF NOT EXISTS skill_advisories (
    id TEXT PRIMARY KEY,
    skill_id TEXT NOT NULL,
    severity TEXT NOT NULL CHECK (severity IN ('low', 'medium', 'high', 'critical')),
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    affected_versions TEXT,
    patched_versions TEXT,
    cwe_ids TEXT,
    advisory_refs TEXT,
    published_at TEXT NOT NULL,
    withdrawn_at TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_skill_advisories_skill_id
    ON skill_advisories(skill_id);
CREATE INDEX IF NOT EXISTS idx_skill_advisories_severity
    ON skill_advisories(severity);
"""


def _parse_schema_columns(schema: str) -> Dict[str, List[Tuple[str, str]]]:
    """Parse CREATE TABLE statements and return {table: [(col_name, col_def), ...]}."""
    tables: Dict[str, List[Tuple[str, str]]] = {}
    for match in re.finditer(r"CREATE TABLE IF NOT EXISTS (\w+)\s*\((.*?)\n\);", schema, re.DOTALL):
        cols: List[Tuple[str, str]] = []
        for line in match.group(2).split("\n"):
            line = line.strip().rstrip(",")
            if not line or line.startswith("--"):
                continue
            upper = line.upper()
            if any(upper.startswith(kw) for kw in ("PRIMARY", "FOREIGN", "UNIQUE", "CHECK")):
                continue
            parts = line.split(None, 1)
            if len(parts) >= 2:
                cols.append((parts[0], line))
        tables[match.group(1)] = cols
    return tables


def _ensure_columns(conn: sqlite3.Connection) -> None:
    """Add any columns present in _SCHEMA but missing from existing tables."""
    for table, columns in _parse_schema_columns(_SCHEMA).items():
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
        if not rows:
            continue
        existing = {row[1] for row in rows}
        for col_name, col_def in columns:
            if col_name not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {col_def}")
                logger.info("Added missing column %s.%s", table, col_name)
    conn.commit()


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise sqlite failures from *action* as :class:`StorageError`."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"Registry cache {action} failed: {exc}") from exc


def open_database(path: Union[str, Path]) -> sqlite3.Connection:
    """Open (creating if needed) the registry cache at *path*.

    ``":memory:"`` gives a private in-memory database, handy for tests.
    A cache that cannot be opened or migrated raises :class:`StorageError`.
    """
    target = str(path)
    if target != ":memory:":
        target = str(Path(target).expanduser())
        try:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create registry cache directory for {target}: {exc}") from exc
    with storage_errors(f"open of {target}"):
        conn = sqlite3.connect(target)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA busy_timeout = 5000")
            # Existing tables first so that indexes on newly added columns can be built.
            _ensure_columns(conn)
            conn.executescript(_SCHEMA)
            conn.commit()
        except sqlite3.Error:
            conn.close()
            raise
    logger.debug("Opened registry cache %s", target)
    return conn
