import json

import pytest
from fastapi.testclient import TestClient

from blueprint import main
from blueprint.config import ConfigurationError, get_settings
from blueprint.storage import DocumentStore, VideoRepository


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "db"
    monkeypatch.setenv("BLUEPRINT_DATABASE_PATH", str(path))
    monkeypatch.delenv("BLUEPRINT_API_BASE_URL", raising=False)
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def repository(db_path):
    return VideoRepository(DocumentStore(str(db_path)))


@pytest.fixture
def client(db_path):
    with TestClient(main.app) as c:
        yield c


def seed(repository, n):
    return [
        repository.insert({"platform": "Youtube", "title": f"clip {i}", "user": "creator", "url": f"https://youtu.be/clip{i:07d}"})
        for i in range(n)
    ]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["remote_source"] is False


def test_list_videos_newest_first_with_clamped_limit(client, repository):
    seeded = seed(repository, 3)
    resp = client.get("/api/videos")
    assert resp.status_code == 200
    assert [v["_id"] for v in resp.json()] == [v.id for v in reversed(seeded)]

    assert len(client.get("/api/videos", params={"limit": "0"}).json()) == 1
    assert len(client.get("/api/videos", params={"limit": "9999"}).json()) == 3
    assert len(client.get("/api/videos", params={"limit": "abc"}).json()) == 3


def test_clamp_limit_bounds(db_path):
    assert main.clamp_limit(None) == 50
    assert main.clamp_limit("-4") == 1
    assert main.clamp_limit("750") == 500
    assert main.clamp_limit("3.5") == 3
    assert main.clamp_limit(" 12abc") == 12
    assert main.clamp_limit("abc") == 50


def test_by_ids_preserves_request_order(client, repository):
    a, b, c = seed(repository, 3)
    resp = client.get("/api/videos/by-ids", params={"ids": f"{b.id},missing,{a.id},{c.id}"})
    assert [v["_id"] for v in resp.json()] == [b.id, a.id, c.id]
    assert client.get("/api/videos/by-ids").json() == []
    assert client.get("/api/videos/by-ids", params={"ids": ""}).json() == []


def test_corrupt_store_returns_500(client, db_path):
    (db_path / "videos.json").write_text("{not json", encoding="utf-8")
    resp = client.get("/api/videos")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch videos"}


def test_invalid_stored_record_returns_json_500(client, db_path):
    (db_path / "videos.json").write_text(
        json.dumps([{"_id": "x", "platform": "Youtube", "user": "a", "mood": "Sleepy"}]), encoding="utf-8"
    )
    resp = client.get("/api/videos")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch videos"}
    assert client.get("/api/videos/by-ids", params={"ids": "x"}).status_code == 500

    created = client.post("/api/catalog/sessions", json={"viewportWidth": 375})
    assert created.status_code == 201
    view = created.json()["view"]
    assert view["videos"] == []
    assert view["error"].startswith("Invalid video record")


def test_favorites_store_failure_is_reported_as_favorites(client, db_path):
    (db_path / "favorites.json").write_text("{not json", encoding="utf-8")
    resp = client.get("/api/users/u1/favorites")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Favorites are unavailable"}


def test_filter_options(client):
    body = client.get("/api/catalog/options").json()
    assert "Music + Culture" in body["filters"]["focus"]
    assert body["filters"]["sponsoredContent"][-1] == "None"
    assert body["orientations"] == ["all", "vertical", "horizontal"]


def test_catalog_session_flow(client, repository):
    seed(repository, 12)
    resp = client.post("/api/catalog/sessions", json={"viewportWidth": 375, "clientId": "browser-1"})
    assert resp.status_code == 201
    session_id = resp.json()["sessionId"]
    view = resp.json()["view"]
    assert view["total"] == 12
    assert view["visibleCount"] == 10
    assert view["hasMore"] is True
    assert view["embeds"][0]["kind"] == "youtube"

    view = client.post(f"/api/catalog/sessions/{session_id}/load-more").json()
    assert view["visibleCount"] == 12
    assert view["hasMore"] is False

    view = client.put(f"/api/catalog/sessions/{session_id}/search", json={"query": "clip 11"}).json()
    assert view["searchQuery"] == "clip 11"
    assert view["videos"][0]["title"] == "clip 11"

    view = client.post(f"/api/catalog/sessions/{session_id}/filters", json={"type": "mood", "value": "Funny/Lighthearted"}).json()
    assert view["total"] == 0
    assert view["filters"] == [{"type": "mood", "value": "Funny/Lighthearted"}]

    view = client.delete(f"/api/catalog/sessions/{session_id}/filters/mood/Funny/Lighthearted").json()
    assert view["filters"] == []

    view = client.put(f"/api/catalog/sessions/{session_id}/orientation", json={"orientation": "vertical"}).json()
    assert view["total"] == 0

    view = client.delete(f"/api/catalog/sessions/{session_id}/filters", params={"includeSearch": "true"}).json()
    assert view["searchQuery"] == ""

    assert client.delete(f"/api/catalog/sessions/{session_id}").json() == {"closed": True}
    assert client.get(f"/api/catalog/sessions/{session_id}").status_code == 404


def test_search_is_restored_for_the_same_client(client, repository):
    seed(repository, 2)
    first = client.post("/api/catalog/sessions", json={"clientId": "browser-2"}).json()["sessionId"]
    client.put(f"/api/catalog/sessions/{first}/search", json={"query": "clip"})

    view = client.post("/api/catalog/sessions", json={"clientId": "browser-2"}).json()["view"]
    assert view["searchInput"] == "clip"
    other = client.post("/api/catalog/sessions", json={"clientId": "browser-3"}).json()["view"]
    assert other["searchInput"] == ""


def test_unknown_filter_is_rejected(client):
    session_id = client.post("/api/catalog/sessions", json={}).json()["sessionId"]
    resp = client.post(f"/api/catalog/sessions/{session_id}/filters", json={"type": "mood", "value": "Sleepy"})
    assert resp.status_code == 422


def test_embed_failure_and_retry(client, repository):
    video = seed(repository, 1)[0]
    session_id = client.post("/api/catalog/sessions", json={"viewportWidth": 1024}).json()["sessionId"]

    view = client.post(f"/api/catalog/sessions/{session_id}/embeds/{video.id}/failed").json()
    assert view["embeds"][0]["kind"] == "fallback"
    assert view["embeds"][0]["retryable"] is True
    assert view["scripts"]["failed"] == [video.id]

    view = client.post(f"/api/catalog/sessions/{session_id}/embeds/{video.id}/retry").json()
    assert view["embeds"][0]["kind"] == "youtube"

    snapshot = client.post(f"/api/catalog/sessions/{session_id}/scripts/instagram/loaded").json()
    assert snapshot["processCalls"] == {"instagram": 1}
    assert client.post(f"/api/catalog/sessions/{session_id}/scripts/tiktok/error").json()["retrying"] is True
    assert client.post(f"/api/catalog/sessions/{session_id}/scripts/tiktok/error").json()["retrying"] is False


def test_favorites_endpoints(client, repository):
    a, b = seed(repository, 2)
    assert client.post("/api/users/u1/favorites", json={"videoId": "nope"}).status_code == 404

    assert client.post("/api/users/u1/favorites", json={"videoId": a.id}).status_code == 201
    client.post("/api/users/u1/favorites", json={"videoId": b.id})
    client.post("/api/users/u1/favorites", json={"videoId": a.id})

    favorites = client.get("/api/users/u1/favorites").json()
    assert [f["videoId"] for f in favorites] == [b.id, a.id]
    assert [v["_id"] for v in client.get("/api/users/u1/favorites/videos").json()] == [b.id, a.id]

    assert client.delete(f"/api/users/u1/favorites/{a.id}").json() == {"removed": True}
    assert client.delete(f"/api/users/u1/favorites/{a.id}").json() == {"removed": False}
    assert client.get("/api/users/u2/favorites").json() == []


def test_startup_fails_without_database_path(monkeypatch):
    monkeypatch.delenv("BLUEPRINT_DATABASE_PATH", raising=False)
    get_settings.cache_clear()
    try:
        with pytest.raises(ConfigurationError):
            with TestClient(main.app):
                pass
    finally:
        get_settings.cache_clear()


def test_idle_catalog_session_expires(client, repository):
    now = [0.0]
    main.SESSIONS.clock = lambda: now[0]
    session_id = client.post("/api/catalog/sessions", json={}).json()["sessionId"]
    assert client.get("/health").json()["sessions"] == 1

    now[0] = main.SESSIONS.idle_ttl + 1
    assert client.get(f"/api/catalog/sessions/{session_id}").status_code == 404
    assert client.get("/health").json()["sessions"] == 0
