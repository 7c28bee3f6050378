"""
Durable record of installed skills.

``manifest.json`` is read speculatively (a missing or corrupt file yields an
empty manifest) and written via temp-file + atomic rename so that a reader
never observes a partial write.  Every mutation must go through
:meth:`ManifestStore.update_safely`, which serialises writers across processes
with :class:`skillwarden.lock.ManifestLock`.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from .errors import SkillNotFoundError, StorageError
from .hashing import compute_hash
from .lock import ManifestLock
from .models import Manifest, ManifestEntry

logger = logging.getLogger(__name__)

ManifestTransform = Callable[[Manifest], Manifest]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ManifestStore:
    """Handle on one manifest file and its lock marker."""

    def __init__(self, manifest_path: Path, lock: Optional[ManifestLock] = None) -> None:
        self.path = Path(manifest_path)
        self.lock = lock or ManifestLock(self.lock_path_for(self.path))

    @staticmethod
    def lock_path_for(manifest_path: Path) -> Path:
        return manifest_path.with_name(manifest_path.name + ".lock")

    # ---- persistence -----------------------------------------------------

    def load(self) -> Manifest:
        """Read the manifest, returning an empty one if missing or unparseable.

        Entries that fail validation are carried in
        :attr:`Manifest.unparsed_skills` so that a later save does not drop them.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug("No manifest at %s; starting fresh", self.path)
            return Manifest()
        except OSError as exc:
            raise StorageError(f"Cannot read manifest {self.path}: {exc}") from exc

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Corrupt manifest %s -- treating as empty: %s", self.path, exc)
            return Manifest()
        if not isinstance(data, dict):
            logger.warning(
                "Invalid manifest structure in %s -- treating as empty: top level is %s",
                self.path, type(data).__name__,
            )
            return Manifest()
        return self._from_document(data)

    def _from_document(self, data: dict) -> Manifest:
        skills = data.get("installedSkills", {})
        header = {k: v for k, v in data.items() if k != "installedSkills"}
        try:
            manifest = Manifest.model_validate(header)
        except ValidationError as exc:
            logger.warning("Invalid manifest header in %s -- using defaults: %s", self.path, exc)
            manifest = Manifest()

        if not isinstance(skills, dict):
            logger.warning(
                "Invalid manifest structure in %s -- installedSkills is %s, not an object",
                self.path, type(skills).__name__,
            )
            return manifest
        for identity, raw_entry in skills.items():
            try:
                manifest.installed_skills[identity] = ManifestEntry.model_validate(raw_entry)
            except ValidationError as exc:
                logger.warning(
                    "Keeping unreadable manifest entry %s in %s as-is: %s",
                    identity, self.path, exc,
                )
                manifest.unparsed_skills[identity] = raw_entry
        return manifest

    def save(self, manifest: Manifest) -> None:
        """Persist via a same-directory temp file and an atomic rename."""
        tmp = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        payload = json.dumps(manifest.to_json_dict(), indent=2, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            try:
                tmp.unlink()
            except OSError as cleanup_exc:
                logger.debug("Could not remove temp manifest %s: %s", tmp, cleanup_exc)
            raise StorageError(f"Failed to save manifest {self.path}: {exc}") from exc
        logger.debug("Manifest saved to %s (%d skills)", self.path, len(manifest.installed_skills))

    def update_safely(self, transform: ManifestTransform) -> Manifest:
        """Lock, load, transform, save, unlock.

        The lock is released on every path; errors from the transform propagate
        unchanged after release.
        """
        self.lock.acquire()
        try:
            manifest = self.load()
            updated = transform(manifest)
            self.save(updated)
            return updated
        finally:
            self.lock.release()

    # ---- queries -----------------------------------------------------------

    def get_entry(self, identity: str) -> Optional[ManifestEntry]:
        return self.load().installed_skills.get(identity)

    def require_entry(self, identity: str) -> ManifestEntry:
        entry = self.get_entry(identity)
        if entry is None:
            raise SkillNotFoundError(identity)
        return entry

    # ---- mutations ---------------------------------------------------------

    def record_install(
        self,
        identity: str,
        content: str,
        install_path: str,
        source: str = "",
        display_name: Optional[str] = None,
        version: Optional[str] = None,
    ) -> ManifestEntry:
        """Upsert the entry for a freshly installed or updated skill.

        ``contentHash`` is recomputed from *content*; ``originalContentHash``
        and ``installedAt`` are kept from the first install.
        """
        content_hash = compute_hash(content)
        recorded: dict = {}

        def _apply(manifest: Manifest) -> Manifest:
            now = _now()
            existing = manifest.installed_skills.get(identity)
            if existing is None:
                entry = ManifestEntry(
                    identity=identity,
                    display_name=display_name or identity.rsplit("/", 1)[-1],
                    version=version,
                    source=source,
                    install_path=install_path,
                    installed_at=now,
                    last_updated=now,
                    content_hash=content_hash,
                    original_content_hash=content_hash,
                )
            else:
                entry = existing.model_copy(
                    update={
                        "display_name": display_name or existing.display_name,
                        "version": version if version is not None else existing.version,
                        "source": source or existing.source,
                        "install_path": install_path,
                        "last_updated": now,
                        "content_hash": content_hash,
                        "original_content_hash": existing.original_content_hash or content_hash,
                    }
                )
            manifest.installed_skills[identity] = entry
            manifest.unparsed_skills.pop(identity, None)
            recorded["entry"] = entry
            return manifest

        self.update_safely(_apply)
        logger.info("Recorded install of %s (hash %s)", identity, content_hash[:8])
        return recorded["entry"]

    def remove_entry(self, identity: str) -> bool:
        """Drop *identity* from the manifest.  Returns ``False`` if absent."""
        removed: dict = {"found": False}

        def _apply(manifest: Manifest) -> Manifest:
            parsed = manifest.installed_skills.pop(identity, None)
            unparsed = manifest.unparsed_skills.pop(identity, None)
            if parsed is not None or unparsed is not None:
                removed["found"] = True
            return manifest

        self.update_safely(_apply)
        if removed["found"]:
            logger.info("Removed %s from manifest", identity)
        return removed["found"]
