"""Tests for the FastAPI caption API.

WHY: The recording app and the renderer both talk to the engine through
these endpoints. Layouts must match what the library produces in-process,
the cache must be observable through the API, and caption sessions must
be isolated per clip.

HOW: FastAPI TestClient drives the app in-process. The module-level
layout cache is swapped for an in-memory one so no files are written,
and the session store is cleared around every test.

RULES:
- The lifespan cleanup task is not started (TestClient is not entered)
- Each test is independent; no shared state between tests
- Tests cover happy paths, 404, 422 and 429
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from caption_sync import __version__
from caption_sync.core.cache import LayoutCache, MemoryCacheStore
from caption_sync.server import app as app_module
from caption_sync.server.app import app, session_store


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_state(monkeypatch):
    """Fresh session store contents and an in-memory layout cache."""
    session_store.clear()
    monkeypatch.setattr(app_module, "layout_cache", LayoutCache(MemoryCacheStore()))
    yield
    session_store.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def layout_body(mock_payload):
    return {
        "episode_id": "ep-1",
        "clip_start_ms": 0,
        "clip_end_ms": 5100,
        "time_base": "source",
        "payload": mock_payload,
    }


@pytest.fixture
def session_id(client, layout_body):
    resp = client.post("/sessions", json=layout_body)
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["sessions"] == 0
        assert data["cached_layouts"] == 0

    def test_health_counts(self, client, layout_body):
        client.post("/layouts", json=layout_body)
        client.post("/sessions", json=layout_body)
        data = client.get("/health").json()
        assert data["sessions"] == 1
        assert data["cached_layouts"] == 1


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------


class TestCreateLayout:

    def test_layout_matches_engine(self, client, layout_body):
        resp = client.post("/layouts", json=layout_body)
        assert resp.status_code == 200
        data = resp.json()

        layout = data["layout"]
        assert [w["text"] for w in layout["words"]] == ["Hello", "world.", "This", "is", "a", "test."]
        assert [line["text"] for line in layout["lines"]] == ["Hello world.", "This is a test."]
        assert layout["yByWordIndex"] == [0, 0, 36, 36, 36, 36]
        assert layout["totalH"] == 64
        assert layout["anchors"] == {"times": [1000, 3000, 7100], "offsets": [0, 36, 64]}

        assert data["cached"] is False
        assert data["cache_key"] == "caption-layout:ep-1-0-5100-System-22-28-320-8-source-drop-auto"
        assert data["theme"]["max_width_dp"] == 320

    def test_second_request_is_cached(self, client, layout_body):
        client.post("/layouts", json=layout_body)
        resp = client.post("/layouts", json=layout_body)
        assert resp.json()["cached"] is True

    def test_theme_overrides_are_sanitized(self, client, layout_body):
        layout_body["theme"] = {"font_size": 30, "max_width_dp": 5000}
        data = client.post("/layouts", json=layout_body).json()
        assert data["theme"]["font_size"] == 30
        assert data["theme"]["max_width_dp"] == 360
        assert data["cache_key"].endswith("System-30-28-360-8-source-drop-auto")

    def test_clip_time_base(self, client, layout_body):
        layout_body["clip_start_ms"] = 60000
        layout_body["clip_end_ms"] = 65100
        layout_body["time_base"] = "clip"
        data = client.post("/layouts", json=layout_body).json()
        assert data["layout"]["words"][0]["startMs"] == 1000

    def test_invalid_clip_window(self, client, layout_body):
        layout_body["clip_end_ms"] = 0
        resp = client.post("/layouts", json=layout_body)
        assert resp.status_code == 422
        assert "detail" in resp.json()

    def test_missing_time_base(self, client, layout_body):
        del layout_body["time_base"]
        assert client.post("/layouts", json=layout_body).status_code == 422

    def test_unknown_policy(self, client, layout_body):
        layout_body["policy"] = "guess"
        assert client.post("/layouts", json=layout_body).status_code == 422

    def test_empty_payload(self, client, layout_body):
        layout_body["payload"] = {}
        data = client.post("/layouts", json=layout_body).json()
        assert data["layout"]["words"] == []
        assert data["layout"]["anchors"] == {"times": [], "offsets": []}


class TestClearCache:

    def test_clear(self, client, layout_body):
        client.post("/layouts", json=layout_body)
        resp = client.delete("/layouts/cache")
        assert resp.status_code == 200
        assert resp.json() == {"removed": 1}
        assert client.post("/layouts", json=layout_body).json()["cached"] is False

    def test_clear_empty(self, client):
        assert client.delete("/layouts/cache").json() == {"removed": 0}


# ---------------------------------------------------------------------------
# Caption sessions
# ---------------------------------------------------------------------------


class TestSessions:

    def test_create(self, client, layout_body):
        resp = client.post("/sessions", json=layout_body)
        assert resp.status_code == 201
        data = resp.json()
        assert data["episode_id"] == "ep-1"
        assert data["utterance_count"] == 2
        assert len(data["id"]) == 32

    def test_active_caption(self, client, session_id):
        resp = client.get("/sessions/{}/caption".format(session_id), params={"t": 4000})
        assert resp.status_code == 200
        assert resp.json() == {
            "text": "This is a test.",
            "speaker": "B",
            "is_active": True,
            "time_ms": 4000,
        }

    def test_inactive_fallback(self, client, session_id):
        data = client.get("/sessions/{}/caption".format(session_id), params={"t": 2800}).json()
        assert data["text"] == "This is a test."
        assert data["is_active"] is False

    def test_blank_outside_clip(self, client, session_id):
        data = client.get("/sessions/{}/caption".format(session_id), params={"t": 9000}).json()
        assert data["text"] == ""
        assert data["speaker"] is None
        assert data["is_active"] is False

    def test_missing_time_param(self, client, session_id):
        assert client.get("/sessions/{}/caption".format(session_id)).status_code == 422

    def test_unknown_session(self, client):
        resp = client.get("/sessions/nope/caption", params={"t": 0})
        assert resp.status_code == 404
        assert "nope" in resp.json()["detail"]

    def test_invalid_clip_window(self, client, layout_body):
        layout_body["clip_start_ms"] = 6000
        assert client.post("/sessions", json=layout_body).status_code == 422

    def test_store_full(self, client, layout_body, monkeypatch):
        monkeypatch.setattr(session_store, "max_sessions", 1)
        assert client.post("/sessions", json=layout_body).status_code == 201
        resp = client.post("/sessions", json=layout_body)
        assert resp.status_code == 429
        assert "Maximum" in resp.json()["detail"]

    def test_sessions_are_isolated(self, client, layout_body, session_id):
        layout_body["payload"] = {"utterances": [{"text": "other clip", "start": 0, "end": 5000}]}
        other = client.post("/sessions", json=layout_body).json()["id"]

        first = client.get("/sessions/{}/caption".format(session_id), params={"t": 1500}).json()
        second = client.get("/sessions/{}/caption".format(other), params={"t": 1500}).json()
        assert first["text"] == "Hello world."
        assert second["text"] == "Other clip"


class TestDeleteSession:

    def test_delete(self, client, session_id):
        resp = client.delete("/sessions/{}".format(session_id))
        assert resp.status_code == 204
        assert client.get("/sessions/{}/caption".format(session_id), params={"t": 0}).status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete("/sessions/nope").status_code == 404
