"""Progress reporting for transformation runs.

The orchestrator reports through any object satisfying :class:`ProgressSink`.
:class:`ProgressEmitter` is the in-memory implementation used by the API:
it fans events out to per-job subscribers and buffers the most recent ones so
a client that connects late still sees the history.

Each event serializes to a single SSE ``data:`` line via ``to_sse()``.

Finished jobs are evicted lazily: once a job has been complete for
``retention_seconds`` and nobody is subscribed, its channel is dropped on
the next emit, subscribe, lookup or stats call.
"""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..constants import JOB_RETENTION_SECONDS

logger = logging.getLogger(__name__)

MAX_BUFFERED_EVENTS = 100

TERMINAL_EVENT_TYPES = frozenset({"complete", "error"})


class ProgressSink(Protocol):
    """Receiver of run progress. Implementations must not block for long."""

    def emit(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...

    def complete(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...

    def error(self, job_id: str, message: str, exc: Optional[BaseException] = None) -> None:
        ...


@dataclass
class ProgressEvent:
    """Base class for all progress events."""

    type: str
    job_id: str = ""
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    data: Optional[Dict[str, Any]] = None

    def to_sse(self) -> str:
        """Serialize to Server-Sent Events format."""
        return f"data: {json.dumps(asdict(self), default=str)}\n\n"

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES


@dataclass
class ProgressUpdateEvent(ProgressEvent):
    """Emitted for each step of a running job."""

    type: str = "progress"


@dataclass
class CompleteEvent(ProgressEvent):
    """Emitted once when a job finishes, carrying the result."""

    type: str = "complete"


@dataclass
class ErrorEvent(ProgressEvent):
    """Emitted once when a job fails fatally."""

    type: str = "error"


Subscriber = Callable[[ProgressEvent], None]


@dataclass
class _JobChannel:
    subscribers: List[Subscriber] = field(default_factory=list)
    buffer: List[ProgressEvent] = field(default_factory=list)
    completed: bool = False
    completed_at: Optional[float] = None


class ProgressEmitter:
    """Thread-safe per-job event fan-out with a replay buffer."""

    def __init__(
        self,
        max_buffer: int = MAX_BUFFERED_EVENTS,
        retention_seconds: Optional[float] = JOB_RETENTION_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            max_buffer: Events kept per job for replay
            retention_seconds: How long a finished, unwatched job is kept
                (None keeps it until ``cleanup``)
            clock: Monotonic time source; injectable for tests
        """
        self._max_buffer = max_buffer
        self._retention = retention_seconds
        self._clock = clock or time.monotonic
        self._channels: Dict[str, _JobChannel] = {}
        self._lock = threading.Lock()

    # ── ProgressSink ─────────────────────────────────────────────────

    def emit(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._send(ProgressUpdateEvent(job_id=job_id, message=message, data=data))

    def complete(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._send(CompleteEvent(job_id=job_id, message=message, data=data))

    def error(self, job_id: str, message: str, exc: Optional[BaseException] = None) -> None:
        data = {"name": type(exc).__name__, "message": str(exc)} if exc is not None else None
        self._send(ErrorEvent(job_id=job_id, message=message, data=data))

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self, job_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for a job and replay buffered events to it.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._evict_expired()
            channel = self._channels.setdefault(job_id, _JobChannel())
            channel.subscribers.append(callback)
            backlog = list(channel.buffer)

        for event in backlog:
            self._deliver(job_id, callback, event)

        def unsubscribe() -> None:
            with self._lock:
                current = self._channels.get(job_id)
                if current and callback in current.subscribers:
                    current.subscribers.remove(callback)

        return unsubscribe

    def _send(self, event: ProgressEvent) -> None:
        with self._lock:
            self._evict_expired()
            channel = self._channels.setdefault(event.job_id, _JobChannel())
            channel.buffer.append(event)
            if len(channel.buffer) > self._max_buffer:
                del channel.buffer[0]
            if event.is_terminal:
                channel.completed = True
                channel.completed_at = self._clock()
            subscribers = list(channel.subscribers)

        logger.debug(f"[{event.job_id}] {event.type}: {event.message}")
        for callback in subscribers:
            self._deliver(event.job_id, callback, event)

    @staticmethod
    def _deliver(job_id: str, callback: Subscriber, event: ProgressEvent) -> None:
        try:
            callback(event)
        except Exception as e:
            logger.warning(f"Progress subscriber for job {job_id} failed: {e}")

    # ── Inspection ───────────────────────────────────────────────────

    def get_events(self, job_id: str) -> List[ProgressEvent]:
        with self._lock:
            channel = self._channels.get(job_id)
            return list(channel.buffer) if channel else []

    def is_completed(self, job_id: str) -> bool:
        with self._lock:
            channel = self._channels.get(job_id)
            return channel.completed if channel else False

    def has_job(self, job_id: str) -> bool:
        with self._lock:
            self._evict_expired()
            return job_id in self._channels

    def get_subscriber_count(self, job_id: str) -> int:
        with self._lock:
            channel = self._channels.get(job_id)
            return len(channel.subscribers) if channel else 0

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            self._evict_expired()
            completed = sum(1 for c in self._channels.values() if c.completed)
            return {
                "total_jobs": len(self._channels),
                "active_jobs": len(self._channels) - completed,
                "completed_jobs": completed,
                "total_subscribers": sum(len(c.subscribers) for c in self._channels.values()),
            }

    def evict_expired(self) -> List[str]:
        """Drop finished jobs past retention that have no subscribers."""
        with self._lock:
            return self._evict_expired()

    def _evict_expired(self) -> List[str]:
        """Caller holds the lock."""
        if self._retention is None:
            return []
        now = self._clock()
        expired = [
            job_id
            for job_id, channel in self._channels.items()
            if channel.completed
            and not channel.subscribers
            and now - channel.completed_at >= self._retention
        ]
        for job_id in expired:
            del self._channels[job_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} finished jobs: {expired}")
        return expired

    def cleanup(self, job_id: str) -> None:
        with self._lock:
            self._channels.pop(job_id, None)

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()


class LoggingProgressSink:
    """Sink that writes progress to the log. Used by the CLI."""

    def emit(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        logger.info(f"[{job_id}] {message}")

    def complete(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        logger.info(f"[{job_id}] {message}")

    def error(self, job_id: str, message: str, exc: Optional[BaseException] = None) -> None:
        logger.error(f"[{job_id}] {message}")
