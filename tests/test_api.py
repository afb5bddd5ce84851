"""
Tests for the dashboard API.

Behavioral tests through FastAPI's TestClient: response envelopes, filters,
pagination, admin gating of ignore controls, and reload.
"""

import pytest
from fastapi.testclient import TestClient

from versus.api.app import create_app
from versus.config import Settings
from versus.storage import JsonlStore

from tests.conftest import make_result


@pytest.fixture
def settings(tmp_path):
    store = JsonlStore(tmp_path / "sentiment_analysis.jsonl")
    store.append(make_result("c1", "p1", "claude_code_better", score=10, themes=["speed"], analyzed_at=3))
    store.append(make_result("c2", "p1", "codex_better", score=5, themes=["pricing"], analyzed_at=2))
    store.append(make_result("c3", "p2", "equal", score=1, subreddit="codex", themes=["speed"], analyzed_at=1))
    (tmp_path / "sentiment_analysis.jsonl").open("a", encoding="utf-8").write("garbage line\n")
    return Settings(data_dir=tmp_path, log_dir=tmp_path / "logs")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def admin_client(settings):
    settings.admin_mode = True
    with TestClient(create_app(settings)) as client:
        yield client


class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestDashboard:

    def test_envelope_and_statistics(self, client):
        response = client.get("/api/dashboard")
        body = response.json()

        assert response.status_code == 200
        assert body["meta"]["version"] == "1.0"
        assert body["meta"]["total"] == 3
        data = body["data"]
        assert data["total_results"] == 3
        assert data["categories"]["claude_code_better"] == {"count": 1, "score": 10}
        assert data["preference"]["claude_code"] == 1
        assert data["preference"]["codex"] == 1
        assert data["preference"]["claude_code_percentage"] == 50.0
        assert [r["commentId"] for r in data["results"]] == ["c1", "c2", "c3"]
        assert "claudeCodeSentiment" in data["results"][0]

    def test_weighted_and_filtered(self, client):
        data = client.get("/api/dashboard", params={"theme": "speed", "weighted": "true"}).json()["data"]

        assert data["preference"]["total"] == 11
        assert data["preference"]["weighted"] is True
        assert set(data["themes"]) == {"speed", "pricing"}

    def test_popularity_sort(self, client):
        data = client.get("/api/dashboard", params={"sort": "popularity", "category": "codex"}).json()["data"]
        assert [r["commentId"] for r in data["results"]] == ["c2"]

    def test_unknown_category_is_validation_error(self, client):
        response = client.get("/api/dashboard", params={"category": "cursor_better"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_bad_sort_is_validation_error(self, client):
        response = client.get("/api/dashboard", params={"sort": "alphabetical"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_include_ignored_requires_admin(self, client):
        response = client.get("/api/dashboard", params={"include_ignored": "true"})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ADMIN_MODE_REQUIRED"


class TestResults:

    def test_pagination(self, client):
        body = client.get("/api/results", params={"limit": 2, "offset": 1}).json()
        assert [r["commentId"] for r in body["data"]] == ["c2", "c3"]
        assert body["meta"]["total"] == 3

    def test_unknown_route_is_not_found(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestIgnored:

    def test_ignore_endpoints_require_admin(self, client):
        for method, path in [("get", "/api/ignored"), ("post", "/api/ignored/comments/c1"), ("post", "/api/ignored/threads/p1")]:
            response = getattr(client, method)(path)
            assert response.status_code == 403
            assert response.json()["error"]["code"] == "ADMIN_MODE_REQUIRED"

    def test_thread_ignore_round_trip(self, admin_client, settings):
        toggled = admin_client.post("/api/ignored/threads/p1").json()["data"]
        assert toggled == {"id": "p1", "ignored": True, "scope": "thread"}

        data = admin_client.get("/api/dashboard").json()["data"]
        assert [r["commentId"] for r in data["results"]] == ["c3"]
        assert data["ignored_count"] == 2
        assert settings.ignore_path.exists()

        with_ignored = admin_client.get("/api/dashboard", params={"include_ignored": "true"}).json()["data"]
        assert len(with_ignored["results"]) == 3
        assert with_ignored["results"][0]["ignored"] is True

        admin_client.post("/api/ignored/threads/p1")
        assert len(admin_client.get("/api/dashboard").json()["data"]["results"]) == 3

    def test_list_ignored(self, admin_client):
        admin_client.post("/api/ignored/comments/c2")
        body = admin_client.get("/api/ignored").json()
        assert body["data"] == {"comments": ["c2"], "threads": []}


class TestReload:

    def test_reload_picks_up_new_results(self, client, settings):
        JsonlStore(settings.results_path).append(make_result("c4", "p3", "neither"))

        body = client.post("/api/reload").json()

        assert body["data"]["results"] == 4
        assert body["data"]["skipped_lines"] == 1
        assert client.get("/api/dashboard").json()["data"]["total_results"] == 4

    def test_unreadable_results_file_keeps_current_results(self, client, settings):
        settings.results_path.unlink()
        settings.results_path.mkdir()

        response = client.post("/api/reload")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "RESULTS_UNAVAILABLE"
        assert client.get("/api/dashboard").json()["data"]["total_results"] == 3
