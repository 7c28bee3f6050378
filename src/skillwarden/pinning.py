"""Content-hash pinning of installed skills."""

import logging
from typing import Optional

from .errors import NoContentHashError, SkillNotFoundError
from .hashing import short_hash
from .manifest import ManifestStore
from .models import Manifest

logger = logging.getLogger(__name__)


def pin_skill(store: ManifestStore, identity: str) -> str:
    """Pin *identity* to the 8-char prefix of its current content hash.

    Falls back to ``originalContentHash`` when no current hash is recorded.
    Raises :class:`SkillNotFoundError` for an unknown skill and
    :class:`NoContentHashError` when the entry has no hash at all.
    """
    pinned: dict = {}

    def _apply(manifest: Manifest) -> Manifest:
        entry = manifest.installed_skills.get(identity)
        if entry is None:
            raise SkillNotFoundError(identity)
        source_hash = entry.pin_source_hash
        if not source_hash:
            raise NoContentHashError(identity)
        pin = short_hash(source_hash)
        manifest.installed_skills[identity] = entry.model_copy(update={"pinned_version": pin})
        pinned["value"] = pin
        return manifest

    store.update_safely(_apply)
    logger.info("Pinned %s to content hash %s", identity, pinned["value"])
    return pinned["value"]


def unpin_skill(store: ManifestStore, identity: str) -> Optional[str]:
    """Remove the pin from *identity*, returning the previous pin value.

    A skill that is not pinned is left untouched and ``None`` is returned.
    """
    entry = store.get_entry(identity)
    if entry is None:
        raise SkillNotFoundError(identity)
    if not entry.pinned_version:
        logger.debug("Skill %s is not pinned; nothing to do", identity)
        return None

    previous: dict = {"value": None}

    def _apply(manifest: Manifest) -> Manifest:
        current = manifest.installed_skills.get(identity)
        if current is None:
            raise SkillNotFoundError(identity)
        previous["value"] = current.pinned_version
        if current.pinned_version:
            manifest.installed_skills[identity] = current.model_copy(update={"pinned_version": None})
        return manifest

    store.update_safely(_apply)
    if previous["value"]:
        logger.info("Unpinned %s (was pinned to %s)", identity, previous["value"])
    return previous["value"]
