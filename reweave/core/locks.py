"""Thread-safe repository locks with TTL.

Prevents two orchestration runs from mutating the same repository at the
same time. Acquisition never blocks: a taken key returns ``False`` straight
away and callers decide whether to reject or retry.

Expiry is checked lazily on every read and acquire; there is no background
sweep. The TTL only exists to recover from runs that died without releasing.

Usage:
    locks = RepositoryLock(ttl_seconds=600)
    if locks.acquire("acme/shop"):
        try:
            ...
        finally:
            locks.release("acme/shop")

    with locks.hold("acme/shop"):   # raises RepositoryBusyError when taken
        ...
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional

from .constants import LOCK_TTL_SECONDS
from .errors import RepositoryBusyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockEntry:
    repository_key: str
    acquired_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "repository_key": self.repository_key,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class RepositoryLock:
    """Per-repository mutual exclusion for one process.

    Attributes:
        ttl: How long an unreleased entry stays valid.
    """

    def __init__(
        self,
        ttl_seconds: int = LOCK_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize an empty lock table.

        Args:
            ttl_seconds: Lifetime of an entry (default: 600 = 10 minutes)
            clock: Returns the current time; injectable for tests
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or datetime.now
        self._entries: Dict[str, LockEntry] = {}
        self._mutex = threading.Lock()

    def _live_entry(self, key: str, now: datetime) -> Optional[LockEntry]:
        """Return the entry for ``key``, evicting it if expired. Caller holds the mutex."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(now):
            logger.warning(f"Lock for {key} expired at {entry.expires_at.isoformat()}, evicting")
            del self._entries[key]
            return None
        return entry

    def acquire(self, key: str) -> bool:
        """Take the lock for ``key``.

        Returns:
            True if acquired, False if an unexpired entry already exists.
        """
        with self._mutex:
            now = self._clock()
            if self._live_entry(key, now) is not None:
                logger.info(f"Lock for {key} is already held")
                return False

            self._entries[key] = LockEntry(
                repository_key=key,
                acquired_at=now,
                expires_at=now + self.ttl,
            )
            logger.debug(f"Acquired lock for {key}")
            return True

    def is_locked(self, key: str) -> bool:
        with self._mutex:
            return self._live_entry(key, self._clock()) is not None

    def release(self, key: str) -> None:
        """Remove the entry for ``key``. Releasing a free key is a no-op."""
        with self._mutex:
            if self._entries.pop(key, None) is not None:
                logger.debug(f"Released lock for {key}")

    def get_lock_info(self, key: str) -> Optional[LockEntry]:
        with self._mutex:
            return self._live_entry(key, self._clock())

    def get_active_locks(self) -> List[LockEntry]:
        """All unexpired entries; stale ones are evicted along the way."""
        with self._mutex:
            now = self._clock()
            active = []
            for key in list(self._entries):
                entry = self._live_entry(key, now)
                if entry is not None:
                    active.append(entry)
            return active

    def get_active_lock_count(self) -> int:
        return len(self.get_active_locks())

    def clear_all(self) -> None:
        with self._mutex:
            count = len(self._entries)
            self._entries.clear()
        if count:
            logger.info(f"Cleared {count} repository locks")

    @contextmanager
    def hold(self, key: str) -> Iterator[LockEntry]:
        """Hold the lock for the duration of a ``with`` block.

        Raises:
            RepositoryBusyError: If ``key`` is already locked.
        """
        if not self.acquire(key):
            raise RepositoryBusyError(key)
        try:
            entry = self.get_lock_info(key)
            yield entry
        finally:
            self.release(key)
