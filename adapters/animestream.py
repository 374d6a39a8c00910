# adapters/animestream.py
"""Base for sites built on the "animestream" WordPress theme.

Listings use ``.listupd .bs``/``.bsx`` cards, detail pages use ``.spe``
info rows with an ``.eplister`` episode list, and episode pages expose a
default iframe plus ``select.mirror`` options holding either plain URLs or
base64 encoded iframe HTML.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional
from urllib.parse import quote

from adapters.html_adapter import (
    HtmlSourceAdapter,
    ListingPlan,
    decode_embedded_url,
    is_ad_frame,
    parse_info_pairs,
    pick,
    quality_from_label,
    select_texts,
    slug_from_href,
)
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_servers, to_detail
from utils.extraction import SelectorRule, first_match
from utils.text import clean_text, dedupe_strings, extract_number

LOGGER = logging.getLogger(__name__)

CARD_TITLE_RULES = (
    SelectorRule(".tt h2"),
    SelectorRule(".tt"),
    SelectorRule(".title"),
    SelectorRule("h2"),
    SelectorRule("a", "title"),
)

CARD_PLAN = ListingPlan(
    containers=(".listupd .bs, .bsx, article.bs, .animpost, .animepost",),
    title=CARD_TITLE_RULES,
    latest_marker=(SelectorRule(".epx"), SelectorRule(".sb")),
    type=(SelectorRule(".typez"), SelectorRule(".type")),
    status=(SelectorRule(".status"),),
    rating=(SelectorRule(".rating i"), SelectorRule(".score"), SelectorRule(".numscore")),
)

DETAIL_TITLE_RULES = (
    SelectorRule(".entry-title"),
    SelectorRule("h1.entry-title"),
    SelectorRule(".infox h1"),
)
DETAIL_POSTER_RULES = (
    SelectorRule(".thumb img", "src"),
    SelectorRule(".bigcover img", "src"),
    SelectorRule(".info img", "src"),
    SelectorRule(".thumb img", "data-src"),
)
DETAIL_SYNOPSIS_RULES = (
    SelectorRule(".synopis p"),
    SelectorRule(".synp p"),
    SelectorRule(".entry-content p"),
    SelectorRule(".sinopsis p"),
    SelectorRule(".entry-content"),
)

MIRROR_PLACEHOLDERS = ("pilih", "select")


class AnimestreamAdapter(HtmlSourceAdapter):
    CATEGORY_PATH = ""
    DEFAULT_TYPE = ""
    LISTING_PLANS = {"default": CARD_PLAN}
    NEXT_SELECTORS = (
        ".hpage .r",
        ".pagination .next",
        ".next.page-numbers",
        "a.next",
        ".nextpostslink",
    )

    def canonical_url(self, slug: str, link: str) -> str:
        return f"{self.BASE_URL}/{self.CATEGORY_PATH}/{slug}/"

    def latest_url(self, page: int) -> str:
        return self.BASE_URL if page <= 1 else f"{self.BASE_URL}/page/{page}/"

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self.latest_url(page), page)

    async def list_by_status(self, status: str, page: int = 1) -> ListingPage:
        url = f"{self.BASE_URL}/{self.CATEGORY_PATH}/"
        return await self.fetch_listing(url, page, params={"status": status.lower(), "page": page})

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(f"{self.BASE_URL}/genres/{quote(genre)}/page/{page}/", page)

    async def search(self, query: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(f"{self.BASE_URL}/page/{page}/", page, params={"s": query})

    # --- Detail ---

    def parse_episode_rows(self, soup) -> List[Dict[str, str]]:
        episodes = []
        for anchor in soup.select(".eplister ul li a, .episodelist ul li a, .listeps ul li a"):
            href = self.absolute_url(anchor.get("href", ""))
            episode_slug = slug_from_href(href)
            if not episode_slug:
                continue
            title = (
                first_match(anchor, (SelectorRule(".epl-title"), SelectorRule(".eptitle")))
                or clean_text(anchor.get_text(" ", strip=True))
            )
            number = first_match(anchor, (SelectorRule(".epl-num"),)) or extract_number(title)
            episodes.append(
                {
                    "id": episode_slug,
                    "slug": episode_slug,
                    "number": number,
                    "title": title,
                    "date": first_match(anchor, (SelectorRule(".epl-date"),)),
                    "url": href,
                }
            )
        # Newest first on the page; callers get ascending order.
        episodes.reverse()
        return episodes

    def parse_detail(self, soup, slug: str, url: str) -> ContentDetail:
        info = parse_info_pairs(soup, (".infox .spe span", ".info-content .spe span", ".spe span"))
        alternatives = []
        for text in select_texts(soup, ".alter, .alternative"):
            alternatives.extend(part for part in text.split(","))
        raw = {
            "id": slug,
            "slug": slug,
            "title": first_match(soup, DETAIL_TITLE_RULES) or slug,
            "poster": self.absolute_url(first_match(soup, DETAIL_POSTER_RULES)),
            "synopsis": first_match(soup, DETAIL_SYNOPSIS_RULES),
            "type": pick(info, "type", "tipe") or self.DEFAULT_TYPE,
            "status": pick(info, "status"),
            "rating": pick(info, "score", "skor", "rating"),
            "studio": pick(info, "studio", "studios"),
            "duration": pick(info, "duration", "durasi"),
            "season": pick(info, "season", "musim"),
            "released": pick(info, "released", "rilis", "year", "released on"),
            "country": pick(info, "country", "negara"),
            "total_episodes": pick(info, "episodes", "episode", "total episode"),
            "genres": dedupe_strings(select_texts(soup, ".genxed a, .genre-info a, .info a[href*='genre']")),
            "alternative_titles": alternatives,
            "episodes": self.parse_episode_rows(soup),
            "url": url,
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        url = f"{self.BASE_URL}/{self.CATEGORY_PATH}/{slug}/"
        document = await self.fetch_optional(url)
        if document is None:
            return None
        return self.parse_detail(document.soup(), slug, url)

    # --- Streams ---

    def parse_servers(self, soup) -> List[Dict[str, str]]:
        servers = []
        for frame in soup.select("iframe"):
            src = self.absolute_url(frame.get("src") or frame.get("data-src") or "")
            if src and not is_ad_frame(src):
                servers.append({"name": "Default Player", "url": src, "quality": "HD"})

        for option in soup.select("select.mirror option, .mirror option"):
            label = clean_text(option.get_text(" ", strip=True))
            if not option.get("value") or any(word in label.lower() for word in MIRROR_PLACEHOLDERS):
                continue
            url = decode_embedded_url(option.get("value", ""))
            if not url or is_ad_frame(url):
                continue
            servers.append(
                {
                    "name": label or "Server",
                    "url": self.absolute_url(url),
                    "quality": quality_from_label(label) or "HD",
                }
            )
        return servers

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        document = await self.fetch_optional(f"{self.BASE_URL}/{episode_slug}/")
        if document is None:
            return None
        return normalize_servers(self.parse_servers(document.soup()))
