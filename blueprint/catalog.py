import logging
import time
import uuid
from collections import OrderedDict
from typing import Callable, Dict, List, MutableMapping, Optional, Protocol, Tuple

from pydantic import Field

from .client import FetchError
from .embeds import EmbedLifecycleManager, EmbedRender, render_embed
from .engine import apply_filters, search
from .models import CamelModel, Filter, Video
from .pagination import PaginationController
from .storage import StoreError, VideoRepository
from .taxonomy import Orientation

logger = logging.getLogger(__name__)

SEARCH_STORAGE_KEY = "bp:search"
SESSION_IDLE_TTL_SECONDS = 30 * 60
MAX_SESSIONS = 1000
MAX_CLIENTS = 10_000


class VideoSource(Protocol):
    async def fetch_videos(self, limit: Optional[int] = None) -> List[Video]: ...


class LocalVideoSource:
    def __init__(self, repository: VideoRepository):
        self.repository = repository

    async def fetch_videos(self, limit: Optional[int] = None) -> List[Video]:
        return self.repository.list_videos(limit)


class CatalogView(CamelModel):
    videos: List[Video] = Field(default_factory=list)
    embeds: List[EmbedRender] = Field(default_factory=list)
    total: int = 0
    catalog_size: int = 0
    visible_count: int = 0
    breakpoint: str = ""
    has_more: bool = False
    filters: List[Filter] = Field(default_factory=list)
    orientation: str = Orientation.ALL.value
    search_input: str = ""
    search_query: str = ""
    loading: bool = False
    error: Optional[str] = None
    scripts: Dict = Field(default_factory=dict)


class CatalogStore:
    """View state for one visit to the catalog page."""

    def __init__(
        self,
        viewport_width: Optional[float] = None,
        preferences: Optional[MutableMapping[str, str]] = None,
        embeds: Optional[EmbedLifecycleManager] = None,
    ):
        self.videos: List[Video] = []
        self.filters: List[Filter] = []
        self.orientation: str = Orientation.ALL.value
        self.preferences = preferences if preferences is not None else {}
        saved = self.preferences.get(SEARCH_STORAGE_KEY, "")
        self.search_input = saved
        self.search_query = saved
        self.pagination = PaginationController(viewport_width)
        self.embeds = embeds if embeds is not None else EmbedLifecycleManager()
        self.loading = False
        self.error: Optional[str] = None
        self._displayed_ids: Optional[Tuple[str, ...]] = None

    async def load(self, source: VideoSource, limit: Optional[int] = None) -> None:
        self.loading = True
        try:
            self.videos = await source.fetch_videos(limit)
            self.error = None
            logger.info("Catalog loaded %d videos", len(self.videos))
        except (FetchError, StoreError) as exc:
            logger.warning("Catalog load failed: %s", exc)
            self.videos = []
            self.error = str(exc)
        finally:
            self.loading = False

    # filters

    def toggle_filter(self, filter_type: str, value: str) -> None:
        selected = Filter(type=filter_type, value=value)
        if selected in self.filters:
            self.filters = [f for f in self.filters if f != selected]
            return
        for idx, f in enumerate(self.filters):
            if f.type == filter_type:
                self.filters[idx] = selected
                return
        self.filters.append(selected)

    def remove_filter(self, filter_type: str, value: str) -> None:
        self.filters = [f for f in self.filters if not (f.type == filter_type and f.value == value)]

    def clear_filters(self) -> None:
        self.filters = []

    def set_orientation(self, orientation: str) -> None:
        self.orientation = Orientation(orientation).value

    # search

    def set_search_input(self, text: str) -> None:
        self.search_input = text

    def commit_search(self, text: Optional[str] = None) -> None:
        query = (self.search_input if text is None else text).strip()
        self.search_query = query
        self.search_input = query
        if query:
            self.preferences[SEARCH_STORAGE_KEY] = query
        else:
            self.preferences.pop(SEARCH_STORAGE_KEY, None)

    def clear_search(self) -> None:
        self.commit_search("")

    def clear_all(self) -> None:
        self.clear_filters()
        self.clear_search()

    # pagination

    def set_viewport(self, viewport_width: Optional[float]) -> None:
        self.pagination.set_viewport(viewport_width)

    def load_more(self) -> int:
        filtered = self.filtered()
        self.pagination.sync(filtered)
        return self.pagination.load_more(len(filtered))

    # embeds

    def mark_embed_failed(self, video_id: str) -> None:
        self.embeds.mark_failed(video_id)

    def retry_embed(self, video_id: str) -> None:
        self.embeds.retry(video_id)

    def teardown(self) -> None:
        self.embeds.teardown()

    # derived

    def filtered(self) -> List[Video]:
        return search(apply_filters(self.videos, self.filters, self.orientation), self.search_query)

    def render(self) -> CatalogView:
        filtered = self.filtered()
        self.pagination.sync(filtered)
        displayed = self.pagination.displayed(filtered)
        ids = tuple(v.id for v in displayed)
        if ids != self._displayed_ids:
            self._displayed_ids = ids
            if displayed and not self.loading:
                self.embeds.refresh()
        return CatalogView(
            videos=displayed,
            embeds=[render_embed(v, self.embeds.failed) for v in displayed],
            total=len(filtered),
            catalog_size=len(self.videos),
            visible_count=self.pagination.visible_count,
            breakpoint=self.pagination.breakpoint.value,
            has_more=self.pagination.has_more(len(filtered)),
            filters=list(self.filters),
            orientation=self.orientation,
            search_input=self.search_input,
            search_query=self.search_query,
            loading=self.loading,
            error=self.error,
            scripts=self.embeds.snapshot(),
        )


class SessionRegistry:
    """Live catalog sessions plus per-client saved search.

    A session idle for longer than ``idle_ttl`` seconds is torn down on the
    next access; past ``max_sessions`` the least recently used one goes
    first. Client preferences are capped the same way at ``max_clients``.
    """

    def __init__(
        self,
        idle_ttl: float = SESSION_IDLE_TTL_SECONDS,
        max_sessions: int = MAX_SESSIONS,
        max_clients: int = MAX_CLIENTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_ttl = idle_ttl
        self.max_sessions = max_sessions
        self.max_clients = max_clients
        self.clock = clock
        self._sessions: "OrderedDict[str, CatalogStore]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}
        self._preferences: "OrderedDict[str, Dict[str, str]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def preferences(self, client_id: Optional[str]) -> Dict[str, str]:
        if not client_id:
            return {}
        prefs = self._preferences.setdefault(client_id, {})
        self._preferences.move_to_end(client_id)
        while len(self._preferences) > self.max_clients:
            self._preferences.popitem(last=False)
        return prefs

    def add(self, session: CatalogStore) -> str:
        self.cleanup_expired()
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = session
        self._last_seen[session_id] = self.clock()
        while len(self._sessions) > self.max_sessions:
            oldest = next(iter(self._sessions))
            self._evict(oldest, "capacity")
        return session_id

    def get(self, session_id: str) -> Optional[CatalogStore]:
        self.cleanup_expired()
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
            self._last_seen[session_id] = self.clock()
        return session

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is None:
            return False
        session.teardown()
        return True

    def cleanup_expired(self) -> int:
        cutoff = self.clock() - self.idle_ttl
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            self._evict(session_id, "idle")
        return len(expired)

    def _evict(self, session_id: str, reason: str) -> None:
        self.close(session_id)
        logger.info("Evicted catalog session %s (%s)", session_id, reason)

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
