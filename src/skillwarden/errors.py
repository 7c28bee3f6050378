"""
Error taxonomy for skillwarden.

Callers distinguish "nothing was found" (:class:`NotFoundError`) from
"something went wrong" (every other subclass).  Malformed skill metadata is
never an exception; it degrades to an unversioned state instead.
"""

from typing import Optional


class SkillwardenError(RuntimeError):
    pass


class LockContentionError(SkillwardenError):
    """The manifest lock could not be acquired within the retry budget."""

    def __init__(self, lock_path, attempts: int) -> None:
        self.lock_path = lock_path
        self.attempts = attempts
        super().__init__(
            f"Failed to acquire manifest lock {lock_path} after {attempts} attempts; "
            "another skillwarden process may be running"
        )


class StorageError(SkillwardenError):
    """Filesystem read/write/rename failed for a reason other than contention."""


class NotFoundError(SkillwardenError):
    pass


class SkillNotFoundError(NotFoundError):
    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f'Skill "{identity}" not found in manifest')


class PackNotFoundError(NotFoundError):
    def __init__(self, skills_dir) -> None:
        self.skills_dir = skills_dir
        super().__init__(f"No skills/ directory found at {skills_dir}")


class NoContentHashError(SkillwardenError):
    """A manifest entry carries neither a content hash nor an original hash."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(
            f'No content hash available for "{identity}". '
            "Reinstall the skill to record a hash."
        )


class ResolutionError(SkillwardenError):
    """A content source could not be turned into content.

    ``url`` carries the attempted location (when one was derived) so the
    caller can suggest a manual override.
    """

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        self.url = url
        super().__init__(message)


class InvalidPathError(SkillwardenError):
    pass
