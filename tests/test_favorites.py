import pytest

from blueprint.favorites import FavoritesService
from blueprint.storage import DocumentStore, VideoRepository


@pytest.fixture
def service(tmp_path):
    store = DocumentStore(str(tmp_path))
    return FavoritesService(store, VideoRepository(store))


def seed(service, *titles):
    return [service.videos.insert({"platform": "Youtube", "title": t, "user": "u", "url": f"https://youtu.be/{t}"}) for t in titles]


def test_add_is_idempotent(service):
    first = service.add_favorite("user-1", "vid-1")
    again = service.add_favorite("user-1", "vid-1")
    assert first.created_at == again.created_at
    assert [f.video_id for f in service.list_favorites("user-1")] == ["vid-1"]
    assert service.is_favorite("user-1", "vid-1")
    assert not service.is_favorite("user-2", "vid-1")


def test_list_is_newest_first(service):
    for video_id in ["a", "b", "c"]:
        service.add_favorite("user-1", video_id)
    assert [f.video_id for f in service.list_favorites("user-1")] == ["c", "b", "a"]


def test_remove_is_a_point_delete(service):
    service.add_favorite("user-1", "a")
    service.add_favorite("user-1", "b")
    service.add_favorite("user-2", "a")

    assert service.remove_favorite("user-1", "a") is True
    assert service.remove_favorite("user-1", "a") is False
    assert [f.video_id for f in service.list_favorites("user-1")] == ["b"]
    assert service.is_favorite("user-2", "a")


def test_favorites_survive_a_new_service(service, tmp_path):
    service.add_favorite("user-1", "a")
    store = DocumentStore(str(tmp_path))
    reopened = FavoritesService(store, VideoRepository(store))
    assert reopened.is_favorite("user-1", "a")


def test_resolve_keeps_requested_order_and_drops_unknown(service):
    a, b, c = seed(service, "a", "b", "c")
    resolved = service.resolve_videos([b.id, "missing", a.id, c.id])
    assert [v.title for v in resolved] == ["b", "a", "c"]


def test_favorite_videos_follow_bookmark_order(service):
    a, b = seed(service, "a", "b")
    service.add_favorite("user-1", b.id)
    service.add_favorite("user-1", a.id)
    assert [v.title for v in service.favorite_videos("user-1")] == ["a", "b"]
