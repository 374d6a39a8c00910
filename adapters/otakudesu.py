# adapters/otakudesu.py
"""Otakudesu (anime).

Episode mirrors are not plain links: each ``data-content`` blob is base64
JSON that must be exchanged, together with a nonce, through two
``admin-ajax.php`` calls for the base64 iframe HTML of the player.
"""

import asyncio
import base64
import binascii
import json
import logging
from dataclasses import replace
from typing import Dict, List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup

import config
from adapters.html_adapter import (
    HtmlSourceAdapter,
    ListingPlan,
    is_ad_frame,
    parse_info_pairs,
    pick,
    select_texts,
    slug_from_href,
)
from errors import CatalogError, UnsupportedOperationError
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_servers, to_detail
from utils.extraction import SelectorRule, first_match
from utils.text import clean_text, dedupe_strings, extract_number

LOGGER = logging.getLogger(__name__)

NONCE_ACTION = "aa1208d27f29ca340c92c66d1926f13f"
EMBED_ACTION = "2a3505c93b0035d3f455df82bf976b84"

SKIPPED_EPISODE_WORDS = ("batch", "download", "lengkap")

LATEST_PLAN = ListingPlan(
    containers=(".venz ul li, .veildl ul li, .rseries ul li, .rapi ul li",),
    title=(
        SelectorRule(".jdlflm"),
        SelectorRule(".thumb h2"),
        SelectorRule("h2"),
        SelectorRule("a", "title"),
    ),
    poster=(SelectorRule("img", "src"), SelectorRule("img", "data-src")),
    latest_marker=(SelectorRule(".epz"), SelectorRule(".newnime")),
    link_pattern=r"/anime/[^/]+",
    defaults={"status": "Ongoing"},
)

STATUS_PATHS = {
    "ongoing": ("ongoing-anime", "Ongoing"),
    "completed": ("complete-anime", "Completed"),
    "complete": ("complete-anime", "Completed"),
}

DETAIL_TITLE_RULES = (SelectorRule(".jdlrx h1"), SelectorRule(".infozin h1"), SelectorRule(".entry-title"))
DETAIL_POSTER_RULES = (SelectorRule(".fotoanime img", "src"), SelectorRule(".thumbook img", "src"))
DETAIL_SYNOPSIS_RULES = (
    SelectorRule(".sinopc p"),
    SelectorRule(".desc p"),
    SelectorRule(".sinopsis p"),
    SelectorRule(".sinopc"),
)


class OtakudesuAdapter(HtmlSourceAdapter):
    SOURCE_ID = "otakudesu"
    DISPLAY_NAME = "Otakudesu"
    CONTENT_TYPE = "anime"
    BASE_URL = config.OTAKUDESU_BASE_URL.rstrip("/")
    LISTING_PLANS = {
        "default": LATEST_PLAN,
        "completed": replace(
            LATEST_PLAN,
            containers=(".venz ul li, .veildl ul li, .rseries ul li, .rapi ul li, .col-anime-con",),
            rating=(SelectorRule(".score"), SelectorRule(".epztipe", pattern=r"(\d+(?:\.\d+)?)")),
            defaults={"status": "Completed"},
        ),
        "search": replace(
            LATEST_PLAN,
            containers=(".chi_childs ul li, .veildl ul li, .page ul li",),
            title=(
                SelectorRule(".jdlflm"),
                SelectorRule("h2"),
                SelectorRule("a", "title"),
                SelectorRule("a"),
            ),
            latest_marker=(),
            rating=(),
            defaults={},
        ),
        "genre": replace(
            LATEST_PLAN,
            containers=(".col-anime-con, .venz ul li, .veildl ul li",),
            title=(
                SelectorRule(".col-anime-title"),
                SelectorRule(".jdlflm"),
                SelectorRule("h2"),
                SelectorRule("a", "title"),
            ),
            rating=(SelectorRule(".col-anime-rating"),),
            latest_marker=(SelectorRule(".col-anime-eps"),),
            defaults={},
        ),
    }
    NEXT_SELECTORS = (".pagination .next", ".hpage .r", "a.next", ".nextpostslink")

    def canonical_url(self, slug: str, link: str) -> str:
        return f"{self.BASE_URL}/anime/{slug}/"

    def _paged(self, path: str, page: int) -> str:
        base = f"{self.BASE_URL}/{path}" if path else self.BASE_URL
        if page <= 1:
            return f"{base}/" if path else base
        return f"{base}/page/{page}/"

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged("", page), page)

    async def list_by_status(self, status: str, page: int = 1) -> ListingPage:
        entry = STATUS_PATHS.get(status.lower())
        if entry is None:
            raise UnsupportedOperationError(self.SOURCE_ID, f"list_by_status:{status}")
        path, label = entry
        context = "completed" if label == "Completed" else "default"
        return await self.fetch_listing(self._paged(path, page), page, context)

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged(f"genres/{quote(genre)}", page), page, "genre")

    async def search(self, query: str, page: int = 1) -> ListingPage:
        # Search results come back as a single page.
        if page > 1:
            return ListingPage.empty()
        return await self.fetch_listing(
            f"{self.BASE_URL}/",
            page,
            "search",
            params={"s": query, "post_type": "anime"},
        )

    # --- Detail ---

    def parse_episode_rows(self, soup) -> List[Dict[str, str]]:
        episodes = []
        for row in soup.select(".episodelist ul li, .eplister ul li"):
            anchor = row.select_one("a")
            if anchor is None:
                continue
            href = self.absolute_url(anchor.get("href", ""))
            title = clean_text(anchor.get_text(" ", strip=True)) or first_match(row, (SelectorRule(".leftoff"),))
            lowered = title.lower()
            if any(word in lowered for word in SKIPPED_EPISODE_WORDS):
                continue
            if "/episode/" not in href:
                continue
            episode_slug = slug_from_href(href)
            number = first_match(row, (SelectorRule("a", pattern=r"(?i)episode\s*(\d+)"),)) or extract_number(title)
            episodes.append(
                {
                    "id": episode_slug,
                    "slug": episode_slug,
                    "number": number,
                    "title": title,
                    "date": first_match(row, (SelectorRule(".zeebr"), SelectorRule(".rightoff"))),
                    "url": href,
                }
            )
        episodes.reverse()
        return episodes

    def parse_detail(self, soup, slug: str, url: str) -> ContentDetail:
        info = parse_info_pairs(soup, (".infozin .infozingle p", ".infozingle p", ".spe span"))
        genre_nodes = [
            node
            for paragraph in soup.select(".infozingle p")
            if "genre" in paragraph.get_text().lower()
            for node in paragraph.select("a")
        ]
        genres = [clean_text(node.get_text()) for node in genre_nodes] or select_texts(soup, ".genre-info a")
        raw = {
            "id": slug,
            "slug": slug,
            "title": first_match(soup, DETAIL_TITLE_RULES) or pick(info, "judul") or slug,
            "poster": self.absolute_url(first_match(soup, DETAIL_POSTER_RULES)),
            "synopsis": first_match(soup, DETAIL_SYNOPSIS_RULES),
            "type": pick(info, "tipe", "type") or "TV",
            "status": pick(info, "status"),
            "rating": pick(info, "skor", "score", "rating"),
            "studio": pick(info, "studio", "produser"),
            "duration": pick(info, "durasi", "duration"),
            "season": pick(info, "musim", "season"),
            "released": pick(info, "tanggal rilis", "rilis", "released"),
            "total_episodes": pick(info, "total episode", "episode"),
            "alternative_titles": [pick(info, "japanese")],
            "genres": dedupe_strings(genres),
            "episodes": self.parse_episode_rows(soup),
            "url": url,
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        url = f"{self.BASE_URL}/anime/{slug}/"
        document = await self.fetch_optional(url)
        if document is None:
            return None
        return self.parse_detail(document.soup(), slug, url)

    # --- Streams ---

    def parse_mirrors(self, soup) -> List[Dict[str, str]]:
        mirrors = []
        for group in soup.select(".mirrorstream ul"):
            classes = group.get("class") or []
            quality = classes[0] if classes else ""
            if quality.startswith("m"):
                quality = quality[1:]
            for anchor in group.select("a[data-content]"):
                mirrors.append(
                    {
                        "name": clean_text(anchor.get_text(" ", strip=True)) or "Mirror",
                        "quality": quality,
                        "data_content": anchor.get("data-content", ""),
                    }
                )
        return mirrors

    def parse_default_player(self, soup) -> List[Dict[str, str]]:
        servers = []
        for frame in soup.select("#pembed iframe, .responsive-embed-stream iframe, iframe"):
            src = self.absolute_url(frame.get("src") or frame.get("data-src") or "")
            if src and not is_ad_frame(src):
                servers.append({"name": "Default Player", "url": src, "quality": "HD"})
        return servers

    async def _post_ajax(self, data: Dict[str, str]):
        document = await self.fetch_document(
            f"{self.BASE_URL}/wp-admin/admin-ajax.php",
            method="POST",
            headers={"X-Requested-With": "XMLHttpRequest"},
            data=data,
        )
        return document.json()

    async def fetch_nonce(self) -> str:
        payload = await self._post_ajax({"action": NONCE_ACTION})
        return clean_text(payload.get("data")) if isinstance(payload, dict) else ""

    async def resolve_mirror(self, data_content: str, nonce: str) -> str:
        try:
            params = json.loads(base64.b64decode(data_content).decode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            LOGGER.debug("Unreadable mirror payload source=%s: %s", self.SOURCE_ID, exc)
            return ""
        if not isinstance(params, dict):
            return ""
        payload = {str(key): str(value) for key, value in params.items()}
        payload.update(nonce=nonce, action=EMBED_ACTION)
        response = await self._post_ajax(payload)
        embed = response.get("data") if isinstance(response, dict) else None
        if not embed:
            return ""
        try:
            html = base64.b64decode(embed).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            LOGGER.debug("Unreadable embed payload source=%s", self.SOURCE_ID)
            return ""
        frame = BeautifulSoup(html, "lxml").select_one("iframe")
        return self.absolute_url(frame.get("src", "")) if frame is not None else ""

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        url = f"{self.BASE_URL}/episode/{episode_slug}/"
        document = await self.fetch_optional(url)
        if document is None:
            return None
        soup = document.soup()
        servers = self.parse_default_player(soup)
        mirrors = self.parse_mirrors(soup)

        if mirrors:
            try:
                nonce = await self.fetch_nonce()
            except CatalogError as exc:
                LOGGER.warning("Mirror nonce unavailable source=%s: %s", self.SOURCE_ID, exc)
                nonce = ""
            if nonce:
                resolved = await asyncio.gather(
                    *(self.resolve_mirror(mirror["data_content"], nonce) for mirror in mirrors),
                    return_exceptions=True,
                )
                for mirror, result in zip(mirrors, resolved):
                    if isinstance(result, CatalogError):
                        LOGGER.warning("Mirror failed source=%s name=%s: %s", self.SOURCE_ID, mirror["name"], result)
                        continue
                    if isinstance(result, BaseException):
                        raise result
                    if result and not is_ad_frame(result):
                        name = f"{mirror['name']} ({mirror['quality']})" if mirror["quality"] else mirror["name"]
                        servers.append({"name": name, "url": result, "quality": mirror["quality"]})

        if not servers:
            # Player iframe is injected by script on some episodes.
            rendered = await self.fetch_document(url, render=True)
            servers = self.parse_default_player(rendered.soup())
        return normalize_servers(servers)
