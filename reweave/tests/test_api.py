"""Tests for the FastAPI surface."""

import json

import pytest
from fastapi.testclient import TestClient

from reweave.api.app import create_app
from reweave.api.jobs import JobStore
from reweave.core.config import ReweaveSettings
from reweave.core.locks import RepositoryLock
from reweave.core.transform.progress import ProgressEmitter

PLAN = {
    "id": "plan-1",
    "source_stack": {"framework": "react", "version": "17"},
    "phases": [
        {
            "id": "phase-1",
            "name": "Modernize syntax",
            "order": 1,
            "tasks": [
                {"id": "t1", "category": "code-quality", "affected_files": ["src/a.js"]},
            ],
        }
    ],
}

REQUEST = {
    "repository": {"owner": "acme", "name": "shop"},
    "plan": PLAN,
    "selected_task_ids": ["t1"],
}


@pytest.fixture
def lock():
    return RepositoryLock()


@pytest.fixture
def emitter():
    return ProgressEmitter()


@pytest.fixture
def app(registry, fake_transformer, in_memory_fetcher, lock, emitter):
    registry.register(fake_transformer())
    fetcher = in_memory_fetcher({"src/a.js": "var a = 1;\n"})
    return create_app(registry, fetcher, lock=lock, emitter=emitter, settings=ReweaveSettings())


@pytest.fixture
def client(app):
    return TestClient(app)


def _sse_events(body: str):
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


# ── Health and locks ──────────────────────────────────────────────────────


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["transformers"] == 1
        assert data["active_locks"] == 0

    def test_locks(self, client, lock):
        lock.acquire("acme/shop")
        data = client.get("/api/locks").json()
        assert data["count"] == 1
        assert data["locks"][0]["repository_key"] == "acme/shop"


# ── Transform ─────────────────────────────────────────────────────────────


class TestTransform:

    def test_start_and_fetch_result(self, client, lock):
        response = client.post("/api/transform", json=REQUEST)
        assert response.status_code == 200
        started = response.json()
        assert started["status"] == "processing"

        # TestClient runs background tasks before returning
        result = client.get(f"/api/transform/result/{started['job_id']}")
        assert result.status_code == 200
        data = result.json()
        assert data["status"] == "completed"
        assert data["result"]["success"] is True
        assert data["result"]["transformed_files"] == {"src/a.js": "const a = 1;\n"}
        assert data["result"]["summary"]["tasks_completed"] == 1
        assert not lock.is_locked("acme/shop")

    def test_busy_repository(self, client, lock):
        lock.acquire("acme/shop")
        response = client.post("/api/transform", json=REQUEST)
        assert response.status_code == 409
        assert "already in progress" in response.json()["detail"]

    def test_invalid_plan(self, client, lock):
        response = client.post("/api/transform", json={**REQUEST, "plan": {"phases": []}})
        assert response.status_code == 400
        assert "source_stack" in response.json()["detail"]
        assert not lock.is_locked("acme/shop")

    def test_missing_repository(self, client):
        response = client.post("/api/transform", json={"plan": PLAN})
        assert response.status_code == 422

    def test_unknown_result(self, client):
        assert client.get("/api/transform/result/nope").status_code == 404

    def test_result_while_running(self, client, app):
        app.state.results.start("job-running")
        response = client.get("/api/transform/result/job-running")
        assert response.status_code == 202
        assert response.json()["status"] == "processing"

    def test_failed_run_is_reported(self, registry, fake_transformer, in_memory_fetcher, lock):
        registry.register(fake_transformer())
        app = create_app(
            registry,
            in_memory_fetcher({}, error="clone failed"),
            lock=lock,
            settings=ReweaveSettings(),
        )
        client = TestClient(app)

        job_id = client.post("/api/transform", json=REQUEST).json()["job_id"]
        data = client.get(f"/api/transform/result/{job_id}").json()
        assert data["status"] == "failed"
        assert data["error"] == "clone failed"
        assert not lock.is_locked("acme/shop")


# ── Streaming ─────────────────────────────────────────────────────────────


class TestStream:

    def test_stream_replays_until_complete(self, client):
        job_id = client.post("/api/transform", json=REQUEST).json()["job_id"]

        response = client.get(f"/api/transform/stream/{job_id}")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = _sse_events(response.text)
        assert events[0]["type"] == "progress"
        assert events[-1]["type"] == "complete"
        assert events[-1]["data"]["job_id"] == job_id
        assert all(e["job_id"] == job_id for e in events)

    def test_stream_unknown_job(self, client):
        assert client.get("/api/transform/stream/nope").status_code == 404


# ── Retention ─────────────────────────────────────────────────────────────


class Ticker:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRetention:

    @pytest.fixture
    def ticker(self):
        return Ticker()

    @pytest.fixture
    def client(self, registry, fake_transformer, in_memory_fetcher, lock, ticker):
        registry.register(fake_transformer())
        app = create_app(
            registry,
            in_memory_fetcher({"src/a.js": "var a = 1;\n"}),
            lock=lock,
            emitter=ProgressEmitter(retention_seconds=60, clock=ticker),
            settings=ReweaveSettings(),
        )
        app.state.results = JobStore(retention_seconds=120, clock=ticker)
        return TestClient(app)

    def test_finished_job_is_forgotten(self, client, ticker):
        job_id = client.post("/api/transform", json=REQUEST).json()["job_id"]
        assert client.get(f"/api/transform/result/{job_id}").status_code == 200

        ticker.now += 60
        # Events are gone, the result is still kept
        assert client.get(f"/api/transform/stream/{job_id}").status_code == 410
        assert client.get(f"/api/transform/result/{job_id}").status_code == 200

        ticker.now += 60
        assert client.get(f"/api/transform/result/{job_id}").status_code == 404
        assert client.get(f"/api/transform/stream/{job_id}").status_code == 404

    def test_stream_within_retention(self, client, ticker):
        job_id = client.post("/api/transform", json=REQUEST).json()["job_id"]
        ticker.now += 59
        response = client.get(f"/api/transform/stream/{job_id}")
        assert response.status_code == 200
        assert _sse_events(response.text)[-1]["type"] == "complete"


class TestJobStore:

    def test_running_job_is_never_evicted(self):
        ticker = Ticker()
        store = JobStore(retention_seconds=10, clock=ticker)
        store.start("j1")
        ticker.now += 1000
        assert store.get("j1") == {"status": "processing"}
        assert not store.is_finished("j1")

    def test_finished_job_expires(self):
        ticker = Ticker()
        store = JobStore(retention_seconds=10, clock=ticker)
        store.start("j1")
        store.finish("j1", {"status": "completed"})
        assert store.is_finished("j1")

        ticker.now += 9
        assert "j1" in store
        ticker.now += 1
        assert store.evict_expired() == ["j1"]
        assert store.get("j1") is None
        assert len(store) == 0

    def test_no_retention_keeps_everything(self):
        ticker = Ticker()
        store = JobStore(retention_seconds=None, clock=ticker)
        store.finish("j1", {"status": "failed", "error": "boom"})
        ticker.now += 10 ** 6
        assert store.get("j1") == {"status": "failed", "error": "boom"}
