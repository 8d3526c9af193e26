from typing import Dict, Iterable, List, Tuple
from collections import defaultdict

from .models import Filter, Video
from .taxonomy import HORIZONTAL_PLATFORMS, NOT_SPONSORED, VERTICAL_PLATFORMS, Orientation

MIN_QUERY_LENGTH = 2
MIN_TOKEN_LENGTH = 2

# Expansion is one-directional; "surf" reaches "ocean" without the reverse being implied.
SYNONYMS: Dict[str, List[str]] = {
    "ocean": ["sea", "beach", "waves", "surf", "coast"],
    "surf": ["ocean", "waves", "beach"],
    "cinema": ["cinematic", "movie", "film"],
    "movie": ["cinematic", "film", "cinema"],
    "relaxing": ["calm", "chill"],
    "energetic": ["high energy", "hype", "intense"],
    "tech": ["technology", "gaming", "tech + gaming"],
    "music": ["music + culture", "song", "artist"],
    "finance": ["money", "investing"],
    "sports": ["athletics", "competition"],
    "funny": ["comedy", "humor"],
}

FIELD_WEIGHTS: Tuple[Tuple[str, int], ...] = (
    ("title", 5),
    ("user", 4),
    ("category", 3),
    ("focus", 3),
    ("mood", 2),
    ("platform", 1),
)


def group_filters(filters: Iterable[Filter]) -> Dict[str, List[str]]:
    groups: Dict[str, List[str]] = defaultdict(list)
    for f in filters:
        if f.value not in groups[f.type]:
            groups[f.type].append(f.value)
    return dict(groups)


def _matches_group(video: Video, filter_type: str, values: List[str]) -> bool:
    if filter_type == "sponsoredContent":
        current = video.sponsored_content
        return any(current is None if v == NOT_SPONSORED else current == v for v in values)
    if filter_type in ("category", "focus", "mood"):
        return getattr(video, filter_type) in values
    return True


def matches_orientation(video: Video, orientation: str) -> bool:
    if orientation == Orientation.VERTICAL:
        return video.platform in VERTICAL_PLATFORMS
    if orientation == Orientation.HORIZONTAL:
        return video.platform in HORIZONTAL_PLATFORMS
    return True


def apply_filters(videos: List[Video], filters: Iterable[Filter], orientation: str = Orientation.ALL) -> List[Video]:
    """AND across filter types, OR within a type, then the orientation predicate.

    Input order is preserved.
    """
    groups = group_filters(filters)
    return [
        v for v in videos
        if all(_matches_group(v, t, values) for t, values in groups.items()) and matches_orientation(v, orientation)
    ]


def tokenize_query(query: str) -> List[str]:
    base = [w for w in (query or "").lower().split() if len(w) >= MIN_TOKEN_LENGTH]
    expanded: Dict[str, None] = dict.fromkeys(base)
    for word in base:
        for syn in SYNONYMS.get(word, []):
            expanded.setdefault(syn, None)
    return list(expanded)


def searchable_fields(video: Video) -> Dict[str, str]:
    user = (video.user or "").lower()
    return {
        "title": (video.title or "").lower(),
        "user": user[1:] if user.startswith("@") else user,
        "category": (video.category or "").lower(),
        "focus": (video.focus or "").lower(),
        "mood": (video.mood or "").lower(),
        "platform": (video.platform or "").lower(),
    }


def score_video(video: Video, tokens: List[str]) -> int:
    fields = searchable_fields(video)
    score = 0
    for token in tokens:
        for name, weight in FIELD_WEIGHTS:
            if token in fields[name]:
                score += weight
    return score


def search(videos: List[Video], query: str) -> List[Video]:
    q = (query or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return videos
    tokens = tokenize_query(q)
    scored: List[Tuple[int, Video]] = [(score_video(v, tokens), v) for v in videos]
    scored = [(s, v) for s, v in scored if s > 0]
    # list.sort is stable, so equal scores keep input order
    scored.sort(key=lambda x: x[0], reverse=True)
    return [v for _, v in scored]
