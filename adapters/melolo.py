# adapters/melolo.py
import json
import logging
from typing import Any, Dict, List, Optional

import config
from adapters.base_adapter import SourceAdapter
from errors import ParseError
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_listing, normalize_servers, to_detail
from utils.pagination import AffordancePaging, build_page
from utils.record import read_field, read_first, read_path

LOGGER = logging.getLogger(__name__)

STREAM_URL_PATHS = ("data.main_url", "data.backup_url", "url", "stream_url")
MAX_DETAIL_CATEGORIES = 5


def category_names(raw: Any, key: str, limit: int) -> List[str]:
    """Categories arrive as a JSON encoded string of ``[{"name": ...}]``."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError:
        LOGGER.debug("Unreadable category payload source=melolo")
        return []
    if not isinstance(parsed, list):
        return []
    names = [read_field(item, key, "") for item in parsed if isinstance(item, dict)]
    return [name for name in names if name][:limit]


class MeloloAdapter(SourceAdapter):
    SOURCE_ID = "melolo"
    DISPLAY_NAME = "Melolo"
    CONTENT_TYPE = "drama"
    BASE_URL = config.MELOLO_API_URL.rstrip("/")

    async def _api(self, path: str, params=None) -> Any:
        document = await self.fetch_optional(
            f"{self.BASE_URL}{path}",
            headers={"Accept": "application/json"},
            params=params,
        )
        return None if document is None else document.json()

    def book_raw(self, book: Dict[str, Any]) -> Dict[str, Any]:
        book_id = str(read_first(book, ("book_id", "series_id_str"), ""))
        return {
            "id": book_id,
            "slug": book_id,
            "title": read_first(book, ("book_name", "series_title"), ""),
            "poster": read_first(book, ("thumb_url", "series_cover"), ""),
            "type": "Drama",
            "status": read_field(book, "show_creation_status", "") or "Unknown",
            "latest_marker": str(read_first(book, ("serial_count", "episode_cnt"), "")),
            "url": f"{self.BASE_URL}/detail/{book_id}",
        }

    def books(self, payload: Any) -> List[Dict[str, Any]]:
        books = read_field(payload, "books", None)
        return [book for book in books if isinstance(book, dict)] if isinstance(books, list) else []

    async def list_latest(self, page: int = 1) -> ListingPage:
        # The feed is a single short list.
        if page > 1:
            return ListingPage.empty()
        payload = await self._api("/latest")
        items = normalize_listing([self.book_raw(book) for book in self.books(payload)], self.SOURCE_ID)
        return ListingPage(data=items, has_next=False)

    async def search(self, query: str, page: int = 1) -> ListingPage:
        # No offset parameter: ask for every page up to this one and keep the tail.
        page_size = config.MELOLO_PAGE_SIZE
        payload = await self._api("/search", params={"query": query, "limit": page * page_size})
        raws = self.books(payload)[(page - 1) * page_size:]
        items = normalize_listing([self.book_raw(book) for book in raws], self.SOURCE_ID)
        return build_page(items, page=page, paging=AffordancePaging(page_size=page_size), raw_count=len(raws))

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        payload = await self._api(f"/detail/{slug}")
        video = read_path(payload, "data.video_data", None)
        if read_field(payload, "code", None) != 0 or not isinstance(video, dict):
            return None
        episodes = []
        for episode in read_field(video, "video_list", None) or []:
            vid = str(read_field(episode, "vid", "") or "")
            number = str(read_field(episode, "vid_index", "") or "")
            episodes.append({"id": vid, "slug": vid, "number": number, "title": f"Episode {number}".strip()})
        raw = {
            "id": read_field(video, "series_id_str", "") or slug,
            "slug": slug,
            "title": read_field(video, "series_title", ""),
            "poster": read_field(video, "series_cover", ""),
            "synopsis": read_field(video, "series_intro", ""),
            "type": "Drama",
            "status": "Selesai" if read_field(video, "series_status") == 1 else "Ongoing",
            "total_episodes": str(read_field(video, "episode_cnt", "") or ""),
            "genres": category_names(read_field(video, "category_schema", ""), "name", MAX_DETAIL_CATEGORIES),
            "episodes": episodes,
            "url": f"{self.BASE_URL}/detail/{slug}",
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        if not episode_slug:
            raise ParseError("episode_slug", "empty vid")
        payload = await self._api(f"/stream/{episode_slug}")
        if payload is None:
            return None
        servers = []
        for path in STREAM_URL_PATHS:
            url = read_path(payload, path, "")
            if isinstance(url, str) and url:
                servers.append({"name": "Backup" if "backup" in path else "Main", "url": url, "quality": "HD"})
        if not servers:
            LOGGER.warning("Stream response without URL source=%s vid=%s", self.SOURCE_ID, episode_slug)
        return normalize_servers(servers)
