# adapters/dramadash.py
"""DramaDash (short drama) mobile API.

Every call carries the app's header profile and a bearer token obtained by
posting a synthetic ``android_id`` to ``/landing``; see ``SessionManager``.
The home feed has no server paging, so pages are cut locally.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import config
from adapters.base_adapter import SourceAdapter
from errors import AuthError, ParseError
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_listing, normalize_servers, to_detail
from services.session_manager import SessionProfile
from utils.pagination import slice_page
from utils.record import read_field, read_first

LOGGER = logging.getLogger(__name__)

SOURCE_ID = "dramadash"
API_URL = config.DRAMADASH_API_URL.rstrip("/")

SESSION_PROFILE = SessionProfile(
    source_id=SOURCE_ID,
    bootstrap_url=f"{API_URL}/landing",
    headers=config.DRAMADASH_HEADERS,
    device_id_field="android_id",
    device_id_length=16,
)

_EPISODE_SLUG_RE = re.compile(r"^(\d+)-episode-(\d+)$")
STREAM_QUALITY = "720p"


def episode_slug(drama_id: Any, number: Any) -> str:
    return f"{drama_id}-episode-{number}"


def parse_episode_slug(slug: str):
    match = _EPISODE_SLUG_RE.match((slug or "").strip())
    if not match:
        raise ParseError("episode_slug", slug)
    return match.group(1), int(match.group(2))


def genre_names(drama: Dict[str, Any]) -> List[str]:
    names = []
    for genre in read_field(drama, "genres", None) or []:
        if isinstance(genre, str):
            names.append(genre)
        else:
            names.append(read_first(genre, ("displayName", "name"), ""))
    return names


def home_dramas(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Category lists first, then the banner list."""
    dramas = []
    for category in read_field(payload, "dramaList", None) or []:
        dramas.extend(read_field(category, "list", None) or [])
    dramas.extend(read_field(payload, "bannerDramaList", None) or [])
    return [drama for drama in dramas if isinstance(drama, dict)]


def search_results(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    results = read_first(payload, ("data", "list"), [])
    return results if isinstance(results, list) else []


class DramadashAdapter(SourceAdapter):
    SOURCE_ID = SOURCE_ID
    DISPLAY_NAME = "DramaDash"
    CONTENT_TYPE = "drama"
    BASE_URL = API_URL

    async def _api(self, path: str, *, method: str = "GET", json_body: Any = None, params=None) -> Any:
        if self.session_manager is None:
            raise AuthError(f"'{self.SOURCE_ID}' needs a session manager")
        document = await self.session_manager.authorized_fetch(
            self.SOURCE_ID,
            f"{self.BASE_URL}{path}",
            method=method,
            json_body=json_body,
            params=params,
        )
        return document.json()

    def drama_raw(self, drama: Dict[str, Any]) -> Dict[str, Any]:
        drama_id = str(read_field(drama, "id", "") or "")
        episodes = read_field(drama, "episodes", None)
        return {
            "id": drama_id,
            "slug": drama_id,
            "title": read_field(drama, "name", ""),
            "poster": read_field(drama, "poster", ""),
            "synopsis": read_field(drama, "description", ""),
            "type": "Drama",
            "status": "Unknown",
            "rating": read_field(drama, "viewCount", ""),
            "total_episodes": str(len(episodes)) if episodes else str(read_field(drama, "episodeCount", "") or ""),
            "genres": genre_names(drama),
            "url": f"{self.BASE_URL}/drama/{drama_id}",
        }

    async def list_latest(self, page: int = 1) -> ListingPage:
        payload = await self._api("/home")
        items = normalize_listing([self.drama_raw(drama) for drama in home_dramas(payload)], self.SOURCE_ID)
        return slice_page(items, page=page, page_size=config.DRAMADASH_PAGE_SIZE)

    async def search(self, query: str, page: int = 1) -> ListingPage:
        payload = await self._api("/search/text", method="POST", json_body={"search": query})
        items = normalize_listing([self.drama_raw(drama) for drama in search_results(payload)], self.SOURCE_ID)
        return slice_page(items, page=page, page_size=config.DRAMADASH_PAGE_SIZE)

    def parse_episodes(self, drama_id: str, drama: Dict[str, Any]) -> List[Dict[str, Any]]:
        episodes = []
        for episode in read_field(drama, "episodes", None) or []:
            number = read_field(episode, "episodeNumber", None)
            if number is None:
                continue
            slug = episode_slug(drama_id, number)
            title = f"Episode {number}"
            if read_field(episode, "isLocked", False):
                title = f"{title} (Locked)"
            episodes.append({"id": slug, "slug": slug, "number": str(number), "title": title})
        episodes.sort(key=lambda item: int(item["number"]))
        return episodes

    async def _drama(self, drama_id: str) -> Optional[Dict[str, Any]]:
        if not str(drama_id).isdigit():
            LOGGER.info("Non-numeric drama id source=%s id=%s", self.SOURCE_ID, drama_id)
            return None
        payload = await self._api(f"/drama/{drama_id}")
        drama = read_field(payload, "drama", None)
        return drama if isinstance(drama, dict) else None

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        drama = await self._drama(slug)
        if drama is None:
            return None
        raw = self.drama_raw({**drama, "id": drama.get("id") or slug})
        raw["episodes"] = self.parse_episodes(raw["id"], drama)
        return to_detail(raw, self.SOURCE_ID)

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        drama_id, number = parse_episode_slug(episode_slug)
        drama = await self._drama(drama_id)
        if drama is None:
            return None
        episode = next(
            (item for item in read_field(drama, "episodes", None) or [] if read_field(item, "episodeNumber") == number),
            None,
        )
        if episode is None:
            return None
        if read_field(episode, "isLocked", False):
            LOGGER.info("Locked episode source=%s slug=%s", self.SOURCE_ID, episode_slug)
            return []
        return normalize_servers(
            [{"name": "DramaDash", "url": read_field(episode, "videoUrl", ""), "quality": STREAM_QUALITY}]
        )
