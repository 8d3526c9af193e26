from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import List, Optional
import logging
import re
from dotenv import load_dotenv

from .models import Favorite, Video
from .catalog import CatalogStore, CatalogView, LocalVideoSource, SessionRegistry
from .client import CatalogClient
from .config import get_settings, require_database_path, setup_logging
from .embeds import EmbedLifecycleManager, Widget
from .favorites import FavoritesService
from .storage import DocumentStore, StoreError, VideoRepository
from .taxonomy import Orientation, filter_options, is_valid_filter

load_dotenv()
logger = logging.getLogger(__name__)

app = FastAPI(title="Blueprint Video Catalog API", version="1.0.0")

# Process state, built at startup
STORE: Optional[DocumentStore] = None
VIDEOS: Optional[VideoRepository] = None
FAVORITES: Optional[FavoritesService] = None
SESSIONS = SessionRegistry()

LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


class SessionCreate(BaseModel):
    viewport_width: Optional[float] = Field(default=None, alias="viewportWidth")
    client_id: Optional[str] = Field(default=None, alias="clientId")


class FilterToggle(BaseModel):
    type: str
    value: str


class OrientationUpdate(BaseModel):
    orientation: Orientation


class SearchUpdate(BaseModel):
    query: str = ""


class ViewportUpdate(BaseModel):
    width: float = Field(..., ge=0)


class FavoriteCreate(BaseModel):
    video_id: str = Field(..., alias="videoId")


@app.on_event("startup")
async def on_startup():
    global STORE, VIDEOS, FAVORITES, SESSIONS
    settings = get_settings()
    setup_logging(settings.log_level)
    STORE = DocumentStore(require_database_path(settings))
    VIDEOS = VideoRepository(STORE)
    FAVORITES = FavoritesService(STORE, VIDEOS)
    SESSIONS.clear()
    SESSIONS = SessionRegistry(idle_ttl=settings.session_idle_ttl, max_sessions=settings.max_sessions)
    logger.info("Document store ready at %s", STORE.root)


@app.on_event("shutdown")
async def on_shutdown():
    SESSIONS.clear()


STORE_ERROR_MESSAGES = (
    ("/api/videos", "Failed to fetch videos"),
    ("/api/catalog", "Failed to load catalog"),
    ("/api/users", "Favorites are unavailable"),
)


def store_error_message(path: str) -> str:
    for prefix, message in STORE_ERROR_MESSAGES:
        if path.startswith(prefix):
            return message
    return "Storage unavailable"


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": store_error_message(request.url.path)})


def clamp_limit(raw: Optional[str]) -> int:
    """Leading integer of ``raw`` clamped to [1, page_size_max]; "3.5" reads as 3."""
    settings = get_settings()
    match = LEADING_INT_RE.match(raw) if raw is not None else None
    if match is None:
        return settings.page_size_default
    return max(1, min(settings.page_size_max, int(match.group(1))))


def parse_ids(raw: Optional[str]) -> List[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "videos": VIDEOS.count() if VIDEOS else 0,
        "sessions": len(SESSIONS),
        "remote_source": bool(get_settings().api_base_url),
    }


@app.get("/api/videos", response_model=List[Video])
async def list_videos(limit: Optional[str] = Query(default=None)):
    return VIDEOS.list_videos(clamp_limit(limit))


@app.get("/api/videos/by-ids", response_model=List[Video])
async def videos_by_ids(ids: Optional[str] = Query(default=None)):
    wanted = parse_ids(ids)
    if not wanted:
        return []
    return VIDEOS.get_by_ids(wanted)


@app.get("/api/catalog/options")
async def catalog_options():
    return {"filters": filter_options(), "orientations": [o.value for o in Orientation]}


def get_session(session_id: str) -> CatalogStore:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Catalog session not found")
    return session


def video_source():
    settings = get_settings()
    if settings.api_base_url:
        return CatalogClient()
    return LocalVideoSource(VIDEOS)


@app.post("/api/catalog/sessions", status_code=201)
async def create_session(payload: SessionCreate):
    preferences = SESSIONS.preferences(payload.client_id)
    session = CatalogStore(
        viewport_width=payload.viewport_width,
        preferences=preferences,
        embeds=EmbedLifecycleManager(),
    )
    session.embeds.mount()
    await session.load(video_source(), limit=get_settings().page_size_max)
    session_id = SESSIONS.add(session)
    return {"sessionId": session_id, "view": session.render().model_dump(mode="json", by_alias=True)}


@app.get("/api/catalog/sessions/{session_id}", response_model=CatalogView)
async def get_catalog(session_id: str):
    return get_session(session_id).render()


@app.delete("/api/catalog/sessions/{session_id}")
async def close_session(session_id: str):
    get_session(session_id)
    SESSIONS.close(session_id)
    return {"closed": True}


@app.post("/api/catalog/sessions/{session_id}/filters", response_model=CatalogView)
async def toggle_filter(session_id: str, payload: FilterToggle):
    session = get_session(session_id)
    if not is_valid_filter(payload.type, payload.value):
        raise HTTPException(status_code=422, detail=f"Unknown filter {payload.type}={payload.value}")
    session.toggle_filter(payload.type, payload.value)
    return session.render()


@app.delete("/api/catalog/sessions/{session_id}/filters", response_model=CatalogView)
async def clear_filters(session_id: str, include_search: bool = Query(default=False, alias="includeSearch")):
    session = get_session(session_id)
    if include_search:
        session.clear_all()
    else:
        session.clear_filters()
    return session.render()


@app.delete("/api/catalog/sessions/{session_id}/filters/{filter_type}/{value:path}", response_model=CatalogView)
async def remove_filter(session_id: str, filter_type: str, value: str):
    session = get_session(session_id)
    session.remove_filter(filter_type, value)
    return session.render()


@app.put("/api/catalog/sessions/{session_id}/orientation", response_model=CatalogView)
async def set_orientation(session_id: str, payload: OrientationUpdate):
    session = get_session(session_id)
    session.set_orientation(payload.orientation)
    return session.render()


@app.put("/api/catalog/sessions/{session_id}/search", response_model=CatalogView)
async def commit_search(session_id: str, payload: SearchUpdate):
    session = get_session(session_id)
    session.commit_search(payload.query)
    return session.render()


@app.delete("/api/catalog/sessions/{session_id}/search", response_model=CatalogView)
async def clear_search(session_id: str):
    session = get_session(session_id)
    session.clear_search()
    return session.render()


@app.post("/api/catalog/sessions/{session_id}/load-more", response_model=CatalogView)
async def load_more(session_id: str):
    session = get_session(session_id)
    session.load_more()
    return session.render()


@app.put("/api/catalog/sessions/{session_id}/viewport", response_model=CatalogView)
async def set_viewport(session_id: str, payload: ViewportUpdate):
    session = get_session(session_id)
    session.set_viewport(payload.width)
    return session.render()


@app.post("/api/catalog/sessions/{session_id}/embeds/{video_id}/failed", response_model=CatalogView)
async def embed_failed(session_id: str, video_id: str):
    session = get_session(session_id)
    session.mark_embed_failed(video_id)
    return session.render()


@app.post("/api/catalog/sessions/{session_id}/embeds/{video_id}/retry", response_model=CatalogView)
async def embed_retry(session_id: str, video_id: str):
    session = get_session(session_id)
    session.retry_embed(video_id)
    return session.render()


@app.post("/api/catalog/sessions/{session_id}/scripts/{widget}/loaded")
async def script_loaded(session_id: str, widget: Widget):
    session = get_session(session_id)
    session.embeds.script_loaded(widget)
    return session.embeds.snapshot()


@app.post("/api/catalog/sessions/{session_id}/scripts/{widget}/error")
async def script_error(session_id: str, widget: Widget):
    session = get_session(session_id)
    retrying = session.embeds.script_failed(widget)
    return {"retrying": retrying, **session.embeds.snapshot()}


@app.get("/api/users/{user_id}/favorites", response_model=List[Favorite])
async def list_favorites(user_id: str):
    return FAVORITES.list_favorites(user_id)


@app.post("/api/users/{user_id}/favorites", response_model=Favorite, status_code=201)
async def add_favorite(user_id: str, payload: FavoriteCreate):
    if not VIDEOS.get_by_ids([payload.video_id]):
        raise HTTPException(status_code=404, detail="Video not found")
    return FAVORITES.add_favorite(user_id, payload.video_id)


@app.delete("/api/users/{user_id}/favorites/{video_id}")
async def remove_favorite(user_id: str, video_id: str):
    return {"removed": FAVORITES.remove_favorite(user_id, video_id)}


@app.get("/api/users/{user_id}/favorites/videos", response_model=List[Video])
async def favorite_videos(user_id: str):
    return FAVORITES.favorite_videos(user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("blueprint.main:app", host="0.0.0.0", port=8000, reload=True)
