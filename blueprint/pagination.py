from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Video

DESKTOP_MIN_WIDTH = 768


class Breakpoint(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"


DEFAULT_COUNTS: Dict[Breakpoint, int] = {Breakpoint.DESKTOP: 25, Breakpoint.MOBILE: 10}
INCREMENTS: Dict[Breakpoint, int] = {Breakpoint.DESKTOP: 25, Breakpoint.MOBILE: 10}


def breakpoint_for(viewport_width: Optional[float]) -> Breakpoint:
    if viewport_width is not None and viewport_width >= DESKTOP_MIN_WIDTH:
        return Breakpoint.DESKTOP
    return Breakpoint.MOBILE


class PaginationController:
    """Per-breakpoint visible counts over a filtered/ranked list.

    Counts reset whenever the id sequence of the list changes. Switching
    breakpoint only changes which counter is read and written.
    """

    def __init__(self, viewport_width: Optional[float] = None):
        self.breakpoint = breakpoint_for(viewport_width)
        self.counts: Dict[Breakpoint, int] = dict(DEFAULT_COUNTS)
        self._signature: Optional[Tuple[str, ...]] = None

    @property
    def visible_count(self) -> int:
        return self.counts[self.breakpoint]

    def set_viewport(self, viewport_width: Optional[float]) -> Breakpoint:
        self.breakpoint = breakpoint_for(viewport_width)
        return self.breakpoint

    def reset(self) -> None:
        self.counts = dict(DEFAULT_COUNTS)

    def sync(self, videos: Sequence[Video]) -> bool:
        """Reset counters if the list content differs from the last one seen."""
        signature = tuple(v.id for v in videos)
        if signature == self._signature:
            return False
        changed = self._signature is not None
        self._signature = signature
        if changed:
            self.reset()
        return changed

    def _safe_count(self) -> int:
        count = self.counts.get(self.breakpoint, 0)
        if not isinstance(count, int) or count <= 0:
            count = DEFAULT_COUNTS[self.breakpoint]
            self.counts[self.breakpoint] = count
        return count

    def displayed(self, videos: Sequence[Video]) -> List[Video]:
        fallback = DEFAULT_COUNTS[self.breakpoint]
        count = self.counts.get(self.breakpoint, 0)
        sliced = list(videos[:count]) if isinstance(count, int) and count > 0 else []
        if not sliced and videos:
            return list(videos[:fallback])
        return sliced

    def load_more(self, total: int) -> int:
        current = self._safe_count()
        self.counts[self.breakpoint] = max(current, min(current + INCREMENTS[self.breakpoint], total))
        return self.counts[self.breakpoint]

    def has_more(self, total: int) -> bool:
        return self._safe_count() < total
