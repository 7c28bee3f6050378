"""
Cross-process lock for the skill manifest.

The lock is a marker file created with ``O_CREAT | O_EXCL`` next to the
manifest.  Its existence and modification time are the whole protocol: a
marker older than ``stale_seconds`` is assumed to belong to a dead process and
is removed.  The lock is advisory; only writers that go through
:meth:`skillwarden.manifest.ManifestStore.update_safely` are serialised.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

from .errors import LockContentionError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_STALE_SECONDS = 30.0
DEFAULT_RETRY_INTERVAL = 0.1
DEFAULT_MAX_ATTEMPTS = 300


class ManifestLock:
    """Exclusive-create lock marker with stale-lock recovery.

    Usable as a context manager::

        with ManifestLock(manifest_path.with_name("manifest.json.lock")):
            ...
    """

    def __init__(
        self,
        lock_path: Path,
        stale_seconds: float = DEFAULT_STALE_SECONDS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.lock_path = Path(lock_path)
        self.stale_seconds = stale_seconds
        self.retry_interval = retry_interval
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._clock = clock
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    # ---- acquire / release ------------------------------------------------

    def _try_create(self) -> bool:
        """Create the marker exclusively.  ``False`` means it already exists."""
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot create lock file {self.lock_path}: {exc}") from exc
        try:
            os.write(fd, f"{os.getpid()} {self._clock():.3f}\n".encode("ascii"))
        finally:
            os.close(fd)
        return True

    def _marker_age(self) -> Optional[float]:
        """Seconds since the marker was last modified, ``None`` if it vanished."""
        try:
            mtime = self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot stat lock file {self.lock_path}: {exc}") from exc
        return self._clock() - mtime

    def break_if_stale(self) -> bool:
        """Remove the marker if it is older than ``stale_seconds``.

        Returns ``True`` when a stale marker was removed.
        """
        age = self._marker_age()
        if age is None or age <= self.stale_seconds:
            return False
        logger.warning(
            "Removing stale manifest lock %s (age %.1fs > %.1fs)",
            self.lock_path, age, self.stale_seconds,
        )
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.debug("Stale lock %s was removed by another process", self.lock_path)
        except OSError as exc:
            raise StorageError(f"Cannot remove stale lock {self.lock_path}: {exc}") from exc
        return True

    def acquire(self) -> None:
        """Acquire the lock, retrying with a fixed backoff.

        Raises :class:`LockContentionError` once ``max_attempts`` is spent and
        :class:`StorageError` immediately on any creation failure other than
        "already exists".
        """
        if self._held:
            raise RuntimeError(f"Lock {self.lock_path} is already held by this object")

        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create lock directory {self.lock_path.parent}: {exc}") from exc
        for attempt in range(1, self.max_attempts + 1):
            if self._try_create():
                self._held = True
                logger.debug("Acquired manifest lock %s (attempt %d)", self.lock_path, attempt)
                return

            age = self._marker_age()
            if age is None:
                # Holder released between our create and stat.
                continue
            if age > self.stale_seconds:
                self.break_if_stale()
                continue

            logger.debug(
                "Manifest lock %s busy (age %.2fs), retry %d/%d",
                self.lock_path, age, attempt, self.max_attempts,
            )
            if attempt < self.max_attempts:
                self._sleep(self.retry_interval)

        raise LockContentionError(self.lock_path, self.max_attempts)

    def release(self) -> None:
        """Delete the marker.  A marker that is already gone is not an error."""
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.debug("Manifest lock %s already released", self.lock_path)
        except OSError as exc:
            logger.warning("Failed to remove manifest lock %s: %s", self.lock_path, exc)
        finally:
            self._held = False

    def __enter__(self) -> "ManifestLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
