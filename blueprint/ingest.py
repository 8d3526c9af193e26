"""Batch import/export of video records.

Rows from CSV or JSON are normalised into Video fields, matched against
existing records by identity key and then inserted or updated in place. A bad
row is skipped and counted, it never aborts the batch.
"""
import csv
import hashlib
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .models import Video
from .storage import VideoRepository
from .taxonomy import CATEGORY, FOCUS, MOOD, PLATFORM, SPONSORED, Platform

logger = logging.getLogger(__name__)

DEFAULT_RATING = 7.0
MAGNITUDES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
TIKTOK_ID_RE = re.compile(r'data-video-id="([^"]+)"')
INSTAGRAM_ID_RE = re.compile(r'instagram\.com/(?:reel|p)/([^/?"#]+)')
HASH_LENGTH = 16

EXPORT_FIELDS = [
    "platform", "title", "user", "views", "likes", "category", "focus", "mood",
    "sponsoredContent", "rating", "url", "instaEmbed", "tiktokEmbed", "createdAt",
]


class RowValidationError(ValueError):
    pass


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_count(raw: Any, default: Optional[int] = None) -> Optional[int]:
    """Parse '12K', '3.4M', '1,234' or plain numbers into an integer."""
    if isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        return int(round(raw)) if raw >= 0 else default
    text = _text(raw).upper().replace(",", "")
    if not text:
        return default
    multiplier = 1
    if text[-1] in MAGNITUDES:
        multiplier = MAGNITUDES[text[-1]]
        text = text[:-1].strip()
    try:
        value = float(text)
    except ValueError:
        return default
    if value < 0:
        return default
    return int(round(value * multiplier))


def parse_rating(raw: Any, default: float = DEFAULT_RATING) -> float:
    try:
        value = float(_text(raw))
    except ValueError:
        return default
    return min(10.0, max(1.0, value))


def normalize_platform(raw: Any) -> Optional[str]:
    parsed = PLATFORM.parse(_text(raw))
    return parsed.value if parsed is not None else None


def normalize_record(row: Dict[str, Any]) -> Dict[str, Any]:
    platform = normalize_platform(row.get("platform"))
    if platform is None:
        raise RowValidationError(f"unknown platform {row.get('platform')!r}")
    user = _text(row.get("user"))
    if not user:
        raise RowValidationError("missing user")
    url = _text(row.get("url"))
    insta_embed = _text(row.get("instaEmbed") or row.get("instagramEmbed"))
    tiktok_embed = _text(row.get("tiktokEmbed"))

    if platform == Platform.YOUTUBE and not url:
        raise RowValidationError("Youtube video requires url")
    if platform == Platform.INSTAGRAM and not insta_embed:
        raise RowValidationError("Instagram video requires instaEmbed")
    if platform == Platform.TIKTOK and not tiktok_embed:
        raise RowValidationError("TikTok video requires tiktokEmbed")

    sponsored = SPONSORED.parse(_text(row.get("sponsoredContent")))
    return {
        "platform": platform,
        "title": _text(row.get("title")) or f"Video by {user}",
        "user": user,
        "views": parse_count(row.get("views"), 0),
        "likes": parse_count(row.get("likes")),
        "category": CATEGORY.normalize(_text(row.get("category"))).value,
        "focus": FOCUS.normalize(_text(row.get("focus"))).value,
        "mood": MOOD.normalize(_text(row.get("mood"))).value,
        "sponsored_content": sponsored.value if sponsored is not None else None,
        "rating": parse_rating(row.get("rating")),
        "url": url,
        "insta_embed": insta_embed,
        "tiktok_embed": tiktok_embed,
    }


def identity_keys(record: Dict[str, Any]) -> List[str]:
    """De-duplication keys in priority order: embed id, url, markup hash."""
    keys: List[str] = []
    tiktok = record.get("tiktok_embed") or ""
    insta = record.get("insta_embed") or ""
    if tiktok:
        match = TIKTOK_ID_RE.search(tiktok)
        if match:
            keys.append(f"tiktok:{match.group(1)}")
    if insta:
        match = INSTAGRAM_ID_RE.search(insta)
        if match:
            keys.append(f"instagram:{match.group(1)}")
    if record.get("url"):
        keys.append(f"url:{record['url']}")
    if not keys:
        markup = tiktok or insta
        if markup:
            digest = hashlib.sha1(markup.encode("utf-8")).hexdigest()[:HASH_LENGTH]
            keys.append(f"{str(record.get('platform', '')).lower()}:{digest}")
    return keys


def dedup_key(record: Dict[str, Any]) -> Optional[str]:
    keys = identity_keys(record)
    return keys[0] if keys else None


def build_index(videos: Iterable[Video]) -> Dict[str, str]:
    index: Dict[str, str] = {}
    for video in videos:
        for key in identity_keys(video.model_dump()):
            index.setdefault(key, video.id)
    return index


@dataclass
class ImportSummary:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates: int = 0
    by_platform: Counter = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return self.added + self.updated + self.skipped


def upsert_records(repository: VideoRepository, rows: Iterable[Dict[str, Any]]) -> ImportSummary:
    """Apply a batch of rows in memory and write the collection once.

    Raises StoreError when the collection cannot be read or written.
    """
    summary = ImportSummary()
    with repository.store.lock:
        videos = repository.all()
        positions = {v.id: idx for idx, v in enumerate(videos)}
        index = build_index(videos)
        batch_ids = set()
        for position, row in enumerate(rows, start=1):
            try:
                record = normalize_record(row)
            except RowValidationError as exc:
                summary.skipped += 1
                logger.warning("Row %d skipped: %s", position, exc)
                continue
            keys = identity_keys(record)
            existing = next((index[k] for k in keys if k in index), None)
            try:
                if existing is not None:
                    slot = positions[existing]
                    videos[slot] = repository.merged(videos[slot], record)
                    video_id = existing
                else:
                    video = repository.build(record)
                    video_id = video.id
                    positions[video_id] = len(videos)
                    videos.append(video)
            except ValidationError as exc:
                summary.skipped += 1
                logger.error("Row %d failed: %s", position, exc)
                continue
            if existing is not None:
                summary.updated += 1
                if existing in batch_ids:
                    summary.duplicates += 1
                logger.debug("Row %d updated %s", position, existing)
            else:
                summary.added += 1
                batch_ids.add(video_id)
                logger.debug("Row %d added %s", position, video_id)
            for key in keys:
                index.setdefault(key, video_id)
            summary.by_platform[record["platform"]] += 1
        if summary.added or summary.updated:
            repository.save_all(videos)
    return summary


def read_csv_rows(path: str) -> List[Dict[str, Any]]:
    with open(path, newline="", encoding="utf-8-sig") as fh:
        return [dict(row) for row in csv.DictReader(fh)]


def read_json_rows(path: str) -> List[Dict[str, Any]]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    items = data if isinstance(data, list) else [data]
    return [it for it in items if isinstance(it, dict)]


def export_rows(videos: Iterable[Video]) -> List[Dict[str, Any]]:
    rows = []
    for video in videos:
        doc = video.model_dump(mode="json", by_alias=True)
        row = {name: doc.get(name) for name in EXPORT_FIELDS}
        rows.append({k: ("" if v is None else v) for k, v in row.items()})
    return rows


def write_csv(path: str, rows: List[Dict[str, Any]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        writer.writerows(rows)
