"""Outcome store for API transform jobs.

A job is ``processing`` from ``start`` until ``finish`` records its
outcome. Finished outcomes are dropped lazily once they are older than
``retention_seconds``; expiry is checked on every access.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.constants import JOB_RETENTION_SECONDS

logger = logging.getLogger(__name__)

PROCESSING = {"status": "processing"}


class JobStore:
    """Thread-safe job id -> outcome mapping with retention."""

    def __init__(
        self,
        retention_seconds: Optional[float] = JOB_RETENTION_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            retention_seconds: How long a finished outcome is kept
                (None keeps it forever)
            clock: Monotonic time source; injectable for tests
        """
        self._retention = retention_seconds
        self._clock = clock or time.monotonic
        # job_id -> (outcome, finished_at); finished_at is None while running
        self._entries: Dict[str, Tuple[Dict[str, Any], Optional[float]]] = {}
        self._mutex = threading.Lock()

    def start(self, job_id: str) -> None:
        with self._mutex:
            self._evict_expired()
            self._entries[job_id] = (dict(PROCESSING), None)

    def finish(self, job_id: str, outcome: Dict[str, Any]) -> None:
        with self._mutex:
            self._evict_expired()
            self._entries[job_id] = (outcome, self._clock())

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self._mutex:
            self._evict_expired()
            entry = self._entries.get(job_id)
            return entry[0] if entry else None

    def is_finished(self, job_id: str) -> bool:
        with self._mutex:
            self._evict_expired()
            entry = self._entries.get(job_id)
            return entry is not None and entry[1] is not None

    def __contains__(self, job_id: str) -> bool:
        return self.get(job_id) is not None

    def __len__(self) -> int:
        with self._mutex:
            self._evict_expired()
            return len(self._entries)

    def evict_expired(self) -> List[str]:
        with self._mutex:
            return self._evict_expired()

    def _evict_expired(self) -> List[str]:
        """Caller holds the mutex."""
        if self._retention is None:
            return []
        now = self._clock()
        expired = [
            job_id
            for job_id, (_, finished_at) in self._entries.items()
            if finished_at is not None and now - finished_at >= self._retention
        ]
        for job_id in expired:
            del self._entries[job_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} finished job results")
        return expired
