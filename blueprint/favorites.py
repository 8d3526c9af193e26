import logging
from datetime import datetime
from typing import Dict, List

from .models import Favorite, Video, utcnow
from .storage import FAVORITES_COLLECTION, DocumentStore, VideoRepository

logger = logging.getLogger(__name__)


class FavoritesService:
    """Per-user bookmarks keyed by (user_id, video_id).

    The composite key makes add idempotent and removal a point delete, so a
    user never holds two bookmarks for the same video.
    """

    def __init__(self, store: DocumentStore, videos: VideoRepository):
        self.store = store
        self.videos = videos

    def _load(self) -> Dict[str, Dict[str, str]]:
        return self.store.read(FAVORITES_COLLECTION, {})

    def list_favorites(self, user_id: str) -> List[Favorite]:
        entries = self._load().get(user_id, {})
        favorites = [
            Favorite(id=video_id, video_id=video_id, created_at=datetime.fromisoformat(created))
            for video_id, created in reversed(list(entries.items()))
        ]
        favorites.sort(key=lambda f: f.created_at, reverse=True)
        return favorites

    def is_favorite(self, user_id: str, video_id: str) -> bool:
        return video_id in self._load().get(user_id, {})

    def add_favorite(self, user_id: str, video_id: str) -> Favorite:
        with self.store.lock:
            data = self._load()
            entries = data.setdefault(user_id, {})
            if video_id not in entries:
                entries[video_id] = utcnow().isoformat()
                self.store.write(FAVORITES_COLLECTION, data)
                logger.info("User %s bookmarked %s", user_id, video_id)
            created = entries[video_id]
        return Favorite(id=video_id, video_id=video_id, created_at=datetime.fromisoformat(created))

    def remove_favorite(self, user_id: str, video_id: str) -> bool:
        with self.store.lock:
            data = self._load()
            entries = data.get(user_id, {})
            if video_id not in entries:
                return False
            del entries[video_id]
            if not entries:
                data.pop(user_id, None)
            self.store.write(FAVORITES_COLLECTION, data)
        logger.info("User %s removed bookmark %s", user_id, video_id)
        return True

    def resolve_videos(self, video_ids: List[str]) -> List[Video]:
        return self.videos.get_by_ids(video_ids)

    def favorite_videos(self, user_id: str) -> List[Video]:
        return self.resolve_videos([f.video_id for f in self.list_favorites(user_id)])
