import httpx
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config import get_settings
from .models import Video

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    pass


class CatalogClient:
    """Reads videos from a remote Blueprint API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        s = get_settings()
        self.base = (base_url if base_url is not None else s.api_base_url).rstrip('/')
        self.token = token if token is not None else s.api_token
        self.timeout = s.request_timeout
        self.transport = transport

    async def _get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.base:
            raise FetchError("No API base URL configured")
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        url = f"{self.base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url, headers=headers, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            raise FetchError("Failed to fetch videos") from exc
        except ValueError as exc:
            raise FetchError("Invalid response from video API") from exc
        if not isinstance(data, list):
            raise FetchError("Invalid response from video API")
        return data

    async def _videos(self, path: str, params: Dict[str, Any]) -> List[Video]:
        items = await self._get(path, params)
        try:
            return [Video.model_validate(it) for it in items]
        except ValidationError as exc:
            raise FetchError("Invalid video record from video API") from exc

    async def fetch_videos(self, limit: Optional[int] = None) -> List[Video]:
        params = {"limit": limit} if limit is not None else {}
        return await self._videos("/api/videos", params)

    async def fetch_by_ids(self, ids: List[str]) -> List[Video]:
        if not ids:
            return []
        return await self._videos("/api/videos/by-ids", {"ids": ",".join(ids)})
