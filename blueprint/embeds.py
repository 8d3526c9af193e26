"""Third-party embed widgets: script registry, lifecycle and per-card rendering.

The TikTok script only scans the page when it loads, so newly displayed
placeholders need a fresh script tag. The Instagram script exposes
``instgrm.Embeds.process()`` and can be re-invoked in place.
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set

from .models import CamelModel, Video
from .taxonomy import Platform

logger = logging.getLogger(__name__)

MOUNT_DELAY_SECONDS = 0.5
RETRY_BACKOFF_SECONDS = 1.0
MAX_SCRIPT_RETRIES = 1

YOUTUBE_ID_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")
YOUTUBE_EMBED_URL = "https://www.youtube.com/embed/{}"


class Widget(str, Enum):
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"


@dataclass(frozen=True)
class WidgetSpec:
    src: str
    match: str
    hook: Optional[str] = None


WIDGETS: Dict[Widget, WidgetSpec] = {
    Widget.INSTAGRAM: WidgetSpec(src="//www.instagram.com/embed.js", match="instagram.com/embed.js", hook="instgrm"),
    Widget.TIKTOK: WidgetSpec(src="https://www.tiktok.com/embed.js", match="tiktok.com/embed.js"),
}


@dataclass
class ScriptTag:
    src: str
    generation: int
    status: str = "pending"
    is_async: bool = True


@dataclass
class ScriptDocument:
    """In-memory stand-in for the page's script tags and widget globals."""

    scripts: List[ScriptTag] = field(default_factory=list)
    hooks: Dict[str, Callable[[], None]] = field(default_factory=dict)
    process_calls: Dict[str, int] = field(default_factory=dict)
    _generation: int = 0

    def query(self, match: str) -> List[ScriptTag]:
        return [s for s in self.scripts if match in s.src]

    def append(self, src: str) -> ScriptTag:
        self._generation += 1
        tag = ScriptTag(src=src, generation=self._generation)
        self.scripts.append(tag)
        return tag

    def remove(self, tag: ScriptTag) -> None:
        if tag in self.scripts:
            self.scripts.remove(tag)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class EmbedScriptRegistry:
    def __init__(self, document: ScriptDocument):
        self.document = document

    def current(self, widget: Widget) -> Optional[ScriptTag]:
        tags = self.document.query(WIDGETS[widget].match)
        return tags[-1] if tags else None

    def ensure_loaded(self, widget: Widget) -> ScriptTag:
        existing = self.current(widget)
        if existing is not None:
            return existing
        return self.document.append(WIDGETS[widget].src)

    def reload(self, widget: Widget) -> ScriptTag:
        spec = WIDGETS[widget]
        for tag in self.document.query(spec.match):
            self.document.remove(tag)
        return self.document.append(spec.src)

    def process(self, widget: Widget) -> bool:
        spec = WIDGETS[widget]
        hook = self.document.hooks.get(spec.hook) if spec.hook else None
        if hook is None:
            return False
        hook()
        return True


class EmbedLifecycleManager:
    def __init__(
        self,
        document: Optional[ScriptDocument] = None,
        scheduler: Optional[Scheduler] = None,
        mount_delay: float = MOUNT_DELAY_SECONDS,
        retry_backoff: float = RETRY_BACKOFF_SECONDS,
        max_retries: int = MAX_SCRIPT_RETRIES,
    ):
        self.document = document or ScriptDocument()
        self.registry = EmbedScriptRegistry(self.document)
        self.scheduler = scheduler or LoopScheduler()
        self.mount_delay = mount_delay
        self.retry_backoff = retry_backoff
        self.max_retries = max_retries
        self.failed: Set[str] = set()
        self._retries: Dict[Widget, int] = {}
        self._timers: List[TimerHandle] = []

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        handle: Optional[TimerHandle] = None

        def fire() -> None:
            self._timers = [t for t in self._timers if t is not handle]
            callback()

        handle = self.scheduler.call_later(delay, fire)
        self._timers.append(handle)

    def load_scripts(self) -> None:
        for widget in WIDGETS:
            self.registry.ensure_loaded(widget)

    def mount(self) -> None:
        self._schedule(self.mount_delay, self.load_scripts)

    def refresh(self) -> None:
        """Materialise embeds for a changed set of displayed cards."""
        self.registry.process(Widget.INSTAGRAM)
        self._retries.pop(Widget.TIKTOK, None)
        self.registry.reload(Widget.TIKTOK)

    def script_loaded(self, widget: Widget, hook: Optional[Callable[[], None]] = None) -> None:
        tag = self.registry.current(widget)
        if tag is not None:
            tag.status = "loaded"
        self._retries.pop(widget, None)
        spec = WIDGETS[widget]
        if spec.hook and spec.hook not in self.document.hooks:
            self.document.hooks[spec.hook] = hook or self._default_hook(widget)
            # Cards rendered before the widget existed still need processing.
            self.registry.process(widget)

    def _default_hook(self, widget: Widget) -> Callable[[], None]:
        def process() -> None:
            self.document.process_calls[widget.value] = self.document.process_calls.get(widget.value, 0) + 1
        return process

    def script_failed(self, widget: Widget) -> bool:
        """Record a script load error; schedule one reload per failure streak."""
        tag = self.registry.current(widget)
        if tag is not None:
            tag.status = "error"
        attempts = self._retries.get(widget, 0)
        if attempts >= self.max_retries:
            logger.warning("%s embed script failed after %d retries", widget.value, attempts)
            return False
        self._retries[widget] = attempts + 1
        logger.info("%s embed script failed, retrying in %.1fs", widget.value, self.retry_backoff)
        self._schedule(self.retry_backoff, lambda: self.registry.reload(widget))
        return True

    def mark_failed(self, video_id: str) -> None:
        if video_id not in self.failed:
            logger.info("Embed failed for video %s", video_id)
        self.failed.add(video_id)

    def retry(self, video_id: str) -> None:
        self.failed.discard(video_id)
        self.refresh()

    def teardown(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    def snapshot(self) -> dict:
        scripts = []
        for widget in WIDGETS:
            tag = self.registry.current(widget)
            if tag is not None:
                scripts.append({"widget": widget.value, "src": tag.src, "generation": tag.generation, "status": tag.status})
        return {
            "scripts": scripts,
            "failed": sorted(self.failed),
            "processCalls": dict(self.document.process_calls),
        }


class EmbedRender(CamelModel):
    video_id: str
    kind: str
    src: Optional[str] = None
    html: Optional[str] = None
    message: Optional[str] = None
    handle: Optional[str] = None
    link: Optional[str] = None
    retryable: bool = False


def youtube_video_id(url: str) -> Optional[str]:
    match = YOUTUBE_ID_RE.match(url or "")
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None


def _fallback(video: Video, message: str, retryable: bool = False) -> EmbedRender:
    return EmbedRender(
        video_id=video.id,
        kind="fallback",
        message=message,
        handle=video.handle,
        link=video.url or None,
        retryable=retryable,
    )


def render_embed(video: Video, failed: Iterable[str] = ()) -> EmbedRender:
    has_failed = video.id in set(failed)
    if video.platform == Platform.YOUTUBE:
        youtube_id = youtube_video_id(video.url)
        if not youtube_id:
            return _fallback(video, "Invalid YouTube URL")
        if has_failed:
            return _fallback(video, "YouTube embed failed to load", retryable=True)
        return EmbedRender(video_id=video.id, kind="youtube", src=YOUTUBE_EMBED_URL.format(youtube_id))
    if video.platform == Platform.TIKTOK:
        if has_failed:
            return _fallback(video, "TikTok embed failed to load", retryable=True)
        if not video.tiktok_embed.strip():
            return _fallback(video, "TikTok embed not available")
        return EmbedRender(video_id=video.id, kind="tiktok", html=video.tiktok_embed)
    if video.platform == Platform.INSTAGRAM:
        if has_failed:
            return _fallback(video, "Instagram embed failed to load", retryable=True)
        if not video.insta_embed.strip():
            return _fallback(video, "Instagram embed not available")
        return EmbedRender(video_id=video.id, kind="instagram", html=video.insta_embed)
    return _fallback(video, "Unsupported platform")
