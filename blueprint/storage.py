import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .models import Video, utcnow

logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"
FAVORITES_COLLECTION = "favorites"


class StoreError(RuntimeError):
    pass


def load_json(path: Path, default: Any):
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StoreError(f"Cannot read {path}: {exc}") from exc


def save_json(path: Path, data) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)
    except OSError as exc:
        raise StoreError(f"Cannot write {path}: {exc}") from exc


class DocumentStore:
    """JSON-file collections under one directory, one lock for all writers."""

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.lock = threading.RLock()

    def path(self, collection: str) -> Path:
        return self.root / f"{collection}.json"

    def read(self, collection: str, default: Any):
        with self.lock:
            return load_json(self.path(collection), default)

    def write(self, collection: str, data) -> None:
        with self.lock:
            save_json(self.path(collection), data)


def new_id() -> str:
    return uuid.uuid4().hex


class VideoRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self) -> List[Video]:
        docs = self.store.read(VIDEOS_COLLECTION, [])
        if not isinstance(docs, list):
            raise StoreError(f"{self.store.path(VIDEOS_COLLECTION)} does not hold a list of videos")
        try:
            return [Video.model_validate(doc) for doc in docs]
        except ValidationError as exc:
            raise StoreError(f"Invalid video record in {self.store.path(VIDEOS_COLLECTION)}: {exc}") from exc

    def save_all(self, videos: Iterable[Video]) -> None:
        self.store.write(VIDEOS_COLLECTION, [v.model_dump(mode="json", by_alias=True) for v in videos])

    def all(self) -> List[Video]:
        return self._load()

    def count(self) -> int:
        return len(self.store.read(VIDEOS_COLLECTION, []))

    def list_videos(self, limit: Optional[int] = None) -> List[Video]:
        # Reverse first so same-timestamp inserts still come out newest first.
        videos = sorted(reversed(self._load()), key=lambda v: v.created_at, reverse=True)
        return videos if limit is None else videos[:limit]

    def get_by_ids(self, ids: List[str]) -> List[Video]:
        by_id = {v.id: v for v in self._load()}
        return [by_id[i] for i in ids if i in by_id]

    @staticmethod
    def build(fields: Dict[str, Any]) -> Video:
        """A new, unsaved video with a fresh id and timestamps."""
        now = utcnow()
        return Video.model_validate({**fields, "_id": new_id(), "created_at": now, "updated_at": now})

    @staticmethod
    def merged(current: Video, fields: Dict[str, Any]) -> Video:
        """``current`` with ``fields`` applied; id and creation time are kept."""
        return Video.model_validate(
            {**current.model_dump(), **fields, "id": current.id, "created_at": current.created_at, "updated_at": utcnow()}
        )

    def insert(self, fields: Dict[str, Any]) -> Video:
        with self.store.lock:
            videos = self._load()
            video = self.build(fields)
            videos.append(video)
            self.save_all(videos)
        logger.debug("Inserted video %s", video.id)
        return video

    def update(self, video_id: str, fields: Dict[str, Any]) -> Optional[Video]:
        with self.store.lock:
            videos = self._load()
            for idx, current in enumerate(videos):
                if current.id == video_id:
                    videos[idx] = self.merged(current, fields)
                    self.save_all(videos)
                    return videos[idx]
        return None
