"""Tests for progress events and the in-memory emitter."""

import json

from reweave.core.transform.progress import (
    CompleteEvent,
    ErrorEvent,
    ProgressEmitter,
    ProgressUpdateEvent,
)


class TestEvents:

    def test_to_sse(self):
        event = ProgressUpdateEvent(job_id="j1", message="Fetching", data={"n": 1})
        line = event.to_sse()
        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        payload = json.loads(line[len("data: "):])
        assert payload["type"] == "progress"
        assert payload["job_id"] == "j1"
        assert payload["data"] == {"n": 1}
        assert "timestamp" in payload

    def test_terminal_types(self):
        assert CompleteEvent(job_id="j").is_terminal
        assert ErrorEvent(job_id="j").is_terminal
        assert not ProgressUpdateEvent(job_id="j").is_terminal


class TestProgressEmitter:

    def test_subscriber_receives_events(self):
        emitter = ProgressEmitter()
        received = []
        emitter.subscribe("j1", received.append)

        emitter.emit("j1", "step one")
        emitter.emit("j2", "other job")
        emitter.complete("j1", "done", {"ok": True})

        assert [e.message for e in received] == ["step one", "done"]
        assert received[-1].type == "complete"
        assert emitter.is_completed("j1")
        assert not emitter.is_completed("j2")

    def test_late_subscriber_gets_replay(self):
        emitter = ProgressEmitter()
        emitter.emit("j1", "a")
        emitter.emit("j1", "b")

        received = []
        emitter.subscribe("j1", received.append)
        assert [e.message for e in received] == ["a", "b"]

    def test_buffer_is_bounded(self):
        emitter = ProgressEmitter(max_buffer=3)
        for n in range(5):
            emitter.emit("j1", str(n))
        assert [e.message for e in emitter.get_events("j1")] == ["2", "3", "4"]

    def test_unsubscribe(self):
        emitter = ProgressEmitter()
        received = []
        unsubscribe = emitter.subscribe("j1", received.append)
        assert emitter.get_subscriber_count("j1") == 1

        unsubscribe()
        emitter.emit("j1", "after")
        assert received == []
        assert emitter.get_subscriber_count("j1") == 0

    def test_failing_subscriber_does_not_break_others(self):
        emitter = ProgressEmitter()
        received = []

        def broken(event):
            raise RuntimeError("socket closed")

        emitter.subscribe("j1", broken)
        emitter.subscribe("j1", received.append)
        emitter.emit("j1", "still delivered")
        assert [e.message for e in received] == ["still delivered"]

    def test_error_event_carries_exception(self):
        emitter = ProgressEmitter()
        emitter.error("j1", "Transformation failed", ValueError("bad plan"))
        event = emitter.get_events("j1")[-1]
        assert event.type == "error"
        assert event.data == {"name": "ValueError", "message": "bad plan"}

    def test_stats_and_cleanup(self):
        emitter = ProgressEmitter()
        emitter.emit("j1", "a")
        emitter.complete("j2", "done")
        assert emitter.get_stats()["total_jobs"] == 2
        assert emitter.get_stats()["completed_jobs"] == 1

        emitter.cleanup("j1")
        assert not emitter.has_job("j1")
        emitter.clear()
        assert emitter.get_stats()["total_jobs"] == 0


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRetention:

    def test_finished_job_evicted_after_retention(self):
        ticker = Ticker()
        emitter = ProgressEmitter(retention_seconds=30, clock=ticker)
        emitter.emit("j1", "a")
        emitter.complete("j1", "done")

        ticker.now = 29
        assert emitter.has_job("j1")
        ticker.now = 30
        assert not emitter.has_job("j1")
        assert emitter.get_stats()["total_jobs"] == 0

    def test_running_job_is_kept(self):
        ticker = Ticker()
        emitter = ProgressEmitter(retention_seconds=30, clock=ticker)
        emitter.emit("j1", "a")
        ticker.now = 1000
        assert emitter.evict_expired() == []
        assert emitter.has_job("j1")

    def test_watched_job_is_kept(self):
        ticker = Ticker()
        emitter = ProgressEmitter(retention_seconds=30, clock=ticker)
        unsubscribe = emitter.subscribe("j1", lambda event: None)
        emitter.complete("j1", "done")

        ticker.now = 100
        assert emitter.evict_expired() == []
        unsubscribe()
        assert emitter.evict_expired() == ["j1"]

    def test_emit_evicts_other_jobs(self):
        ticker = Ticker()
        emitter = ProgressEmitter(retention_seconds=30, clock=ticker)
        emitter.complete("old", "done")
        ticker.now = 31
        emitter.emit("new", "start")
        assert emitter.get_events("old") == []
        assert emitter.get_stats()["total_jobs"] == 1

    def test_no_retention(self):
        ticker = Ticker()
        emitter = ProgressEmitter(retention_seconds=None, clock=ticker)
        emitter.complete("j1", "done")
        ticker.now = 10 ** 6
        assert emitter.has_job("j1")
