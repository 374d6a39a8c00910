# adapters/dramabox.py
"""DramaBox (short drama) through the public Sansekai JSON proxy.

Responses wrap their body in ``{"data": ...}`` or return it bare. The feeds
have no paging. Episode video URLs live in ``cdnList[].videoPathList[]``.
"""

import logging
from typing import Any, Dict, List, Optional

import config
from adapters.base_adapter import SourceAdapter
from adapters.dramadash import episode_slug, parse_episode_slug
from errors import CatalogError
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_listing, normalize_servers, to_detail
from utils.record import read_field, read_first

LOGGER = logging.getLogger(__name__)

DEFAULT_QUALITY = 720


def unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def drama_list(payload: Any) -> List[Dict[str, Any]]:
    dramas = unwrap(payload)
    return [drama for drama in dramas if isinstance(drama, dict)] if isinstance(dramas, list) else []


def tag_names(drama: Dict[str, Any]) -> List[str]:
    names = []
    for tag in read_field(drama, "tags", None) or []:
        names.append(tag if isinstance(tag, str) else read_first(tag, ("tagName", "name"), ""))
    return [name for name in names if name]


def episode_number(episode: Dict[str, Any], position: int) -> int:
    """``chapterIndex`` is zero based; fall back to list position."""
    index = read_field(episode, "chapterIndex", None)
    return (index if isinstance(index, int) else position) + 1


def default_cdn(episode: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    cdns = [cdn for cdn in read_field(episode, "cdnList", None) or [] if isinstance(cdn, dict)]
    for cdn in cdns:
        if read_field(cdn, "isDefault") == 1:
            return cdn
    return cdns[0] if cdns else None


def video_servers(episode: Dict[str, Any]) -> List[Dict[str, str]]:
    """Every quality of the default CDN, the preferred 720p default first."""
    cdn = default_cdn(episode)
    videos = [video for video in read_field(cdn, "videoPathList", None) or [] if isinstance(video, dict)]

    def rank(video):
        is_default = read_field(video, "isDefault") == 1
        return (not (is_default and read_field(video, "quality") == DEFAULT_QUALITY), not is_default)

    servers = []
    for video in sorted(videos, key=rank):
        quality = read_field(video, "quality", None) or DEFAULT_QUALITY
        servers.append({
            "name": f"DramaBox {quality}p",
            "url": read_field(video, "videoPath", "") or "",
            "quality": f"{quality}p",
        })
    return servers


class DramaboxAdapter(SourceAdapter):
    SOURCE_ID = "dramabox"
    DISPLAY_NAME = "DramaBox"
    CONTENT_TYPE = "drama"
    BASE_URL = config.DRAMABOX_API_URL.rstrip("/")

    async def _api(self, path: str, params=None) -> Any:
        document = await self.fetch_optional(
            f"{self.BASE_URL}/dramabox{path}",
            headers={"Accept": "application/json"},
            params=params,
        )
        return None if document is None else document.json()

    def drama_raw(self, drama: Dict[str, Any]) -> Dict[str, Any]:
        book_id = str(read_first(drama, ("bookId", "id"), ""))
        return {
            "id": book_id,
            "slug": book_id,
            "title": read_first(drama, ("bookName", "title"), ""),
            "poster": read_first(drama, ("coverWap", "bookCover", "cover", "poster"), ""),
            "synopsis": read_first(drama, ("introduction", "abstract"), ""),
            "type": "Drama",
            "status": read_field(drama, "status", "") or "Ongoing",
            "latest_marker": str(read_first(drama, ("chapterCount", "episodeCount", "totalEpisode"), "")),
            "total_episodes": str(read_first(drama, ("chapterCount", "episodeCount", "totalEpisode"), "")),
            "rating": str(read_first(drama, ("rankVo.hotCode", "totalViews", "views"), "")),
            "genres": tag_names(drama),
            "url": f"{self.BASE_URL}/dramabox/detail?bookId={book_id}",
        }

    async def _feed(self, path: str, page: int, params=None) -> ListingPage:
        if page > 1:
            return ListingPage.empty()
        payload = await self._api(path, params=params)
        items = normalize_listing([self.drama_raw(drama) for drama in drama_list(payload)], self.SOURCE_ID)
        return ListingPage(data=items, has_next=False)

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self._feed("/latest", page)

    async def search(self, query: str, page: int = 1) -> ListingPage:
        return await self._feed("/search", page, params={"query": query})

    async def _episodes(self, book_id: str) -> List[Dict[str, Any]]:
        episodes = unwrap(await self._api("/allepisode", params={"bookId": book_id}))
        return [episode for episode in episodes if isinstance(episode, dict)] if isinstance(episodes, list) else []

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        if not slug.isdigit():
            return None
        drama = unwrap(await self._api("/detail", params={"bookId": slug}))
        if not isinstance(drama, dict) or not drama:
            return None
        raw = self.drama_raw(drama)
        raw["slug"] = slug
        try:
            episodes = await self._episodes(slug)
        except CatalogError as exc:
            LOGGER.warning("Episode list failed source=%s book=%s: %s", self.SOURCE_ID, slug, exc)
            episodes = []
        raw["episodes"] = []
        for position, episode in enumerate(episodes):
            number = episode_number(episode, position)
            raw["episodes"].append({
                "id": str(read_first(episode, ("chapterId", "id"), "") or number),
                "slug": episode_slug(slug, number),
                "number": str(number),
                "title": read_first(episode, ("chapterName", "title"), "") or f"Episode {number}",
            })
        if raw["episodes"]:
            raw["total_episodes"] = str(len(raw["episodes"]))
        return to_detail(raw, self.SOURCE_ID)

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        book_id, number = parse_episode_slug(episode_slug)
        for position, episode in enumerate(await self._episodes(book_id)):
            if episode_number(episode, position) == number:
                return normalize_servers(video_servers(episode))
        return None
