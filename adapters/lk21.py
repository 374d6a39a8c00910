# adapters/lk21.py
"""LK21 (film).

Film cards are bare anchors wrapping a poster image, so the listing plan
scans every ``a`` and filters navigation links. Listing pages report
"dari N total halaman", the only source here on the total-pages model.
"""

import logging
import re
from typing import Dict, List, Optional
from urllib.parse import quote, urlparse

import config
from adapters.html_adapter import (
    HtmlSourceAdapter,
    ListingPlan,
    is_ad_frame,
    select_texts,
)
from errors import ParseError
from models import ContentDetail, ListingPage, StreamServer
from services.normalizer import normalize_servers, to_detail
from utils.extraction import SelectorRule, first_match
from utils.pagination import AffordancePaging, TotalPagesPaging, total_pages_from_text
from utils.slug import CONTEXT_TITLE, path_segments
from utils.text import dedupe_strings

LOGGER = logging.getLogger(__name__)

FULL_PAGE_SIZE = 20
NAV_PATH_MARKERS = (
    "/genre/",
    "/country/",
    "/artist/",
    "/series/",
    "/page/",
    "/translator/",
    "/release/",
    "/search/",
    "/year/",
    "/director/",
)

CARD_PLAN = ListingPlan(
    containers=("a:has(img)",),
    title=(SelectorRule("", "title"), SelectorRule("img", "alt")),
    link=(SelectorRule("", "href"),),
    poster=(SelectorRule("img", "src"), SelectorRule("img", "data-src")),
    rating=(SelectorRule(".rating, .score, .imdb", pattern=r"([\d.]+)"),),
    type=(SelectorRule(".quality, .qlty"),),
    link_excludes=NAV_PATH_MARKERS,
)

DETAIL_TITLE_RULES = (
    SelectorRule("h1"),
    SelectorRule("title", pattern=r"^([^|]+)"),
)
DETAIL_POSTER_RULES = (
    SelectorRule('meta[property="og:image"]', "content"),
    SelectorRule(".poster img", "src"),
    SelectorRule(".thumb img", "src"),
    SelectorRule(".cover img", "src"),
)
DETAIL_SYNOPSIS_RULES = (
    SelectorRule(".synopsis"),
    SelectorRule(".sinopsis"),
    SelectorRule('[itemprop="description"]'),
    SelectorRule(".description"),
    SelectorRule('meta[name="description"]', "content"),
    SelectorRule('meta[property="og:description"]', "content"),
)
_YEAR_RE = re.compile(r"-(\d{4})$")
_DURATION_RE = r"(\d+:\d+|\d+\s*(?:min|menit))"

SERVER_LINK_SELECTORS = 'a[href*="playeriframe"], a[href*="embed"], a[href*="player"]'


class Lk21Adapter(HtmlSourceAdapter):
    SOURCE_ID = "lk21"
    DISPLAY_NAME = "LK21"
    CONTENT_TYPE = "film"
    BASE_URL = config.LK21_BASE_URL.rstrip("/")
    LISTING_PLANS = {"default": CARD_PLAN}
    SLUG_CONTEXT = CONTEXT_TITLE

    def paging(self):
        return TotalPagesPaging(
            extract_total=total_pages_from_text(r"dari\s+(\d+)\s+total\s+halaman"),
            fallback=AffordancePaging(page_size=FULL_PAGE_SIZE),
        )

    def parse_listing_item(self, node, plan: ListingPlan) -> Dict[str, str]:
        raw = super().parse_listing_item(node, plan)
        link = raw["url"]
        if urlparse(link).netloc and urlparse(link).netloc != urlparse(self.BASE_URL).netloc:
            raise ParseError("link", f"foreign host {link}")
        segments = path_segments(link)
        if len(segments) != 1 or len(raw["slug"]) < 3 or len(raw["title"]) < 3:
            raise ParseError("link", f"not a film card {link}")
        return raw

    def _paged(self, path: str, page: int) -> str:
        base = f"{self.BASE_URL}/{path}"
        return base if page <= 1 else f"{base}/page/{page}"

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged("release", page), page)

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged(f"genre/{quote(genre)}", page), page)

    async def list_by_country(self, country: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged(f"country/{quote(country)}", page), page)

    async def list_by_season(self, season: str, page: int = 1) -> ListingPage:
        # Films are grouped by release year.
        return await self.fetch_listing(self._paged(f"year/{quote(season)}", page), page)

    async def search(self, query: str, page: int = 1) -> ListingPage:
        # Results are filled in by script.
        url = f"{self.BASE_URL}/search" if page <= 1 else f"{self.BASE_URL}/search/page/{page}/"
        return await self.fetch_listing(
            f"{url}?s={quote(query)}",
            page,
            render=True,
            paging=AffordancePaging(page_size=FULL_PAGE_SIZE),
        )

    def parse_detail(self, soup, slug: str, url: str) -> ContentDetail:
        countries = select_texts(soup, 'a[href*="/country/"]')
        year = _YEAR_RE.search(slug)
        raw = {
            "id": slug,
            "slug": slug,
            "title": first_match(soup, DETAIL_TITLE_RULES) or slug,
            "poster": self.absolute_url(first_match(soup, DETAIL_POSTER_RULES)),
            "synopsis": first_match(soup, DETAIL_SYNOPSIS_RULES),
            "type": "Movie",
            "rating": first_match(soup, (SelectorRule('.rating, .imdb, [itemprop="ratingValue"]', pattern=r"([\d.]+)"),)),
            "duration": first_match(soup, (SelectorRule('[itemprop="duration"], .duration, .runtime', pattern=_DURATION_RE),)),
            "released": year.group(1) if year else "",
            "country": countries[-1] if countries else "",
            "studio": ", ".join(dedupe_strings(select_texts(soup, 'a[href*="/director/"]'))),
            "genres": select_texts(soup, 'a[href*="/genre/"]'),
            "cast": select_texts(soup, 'a[href*="/artist/"]'),
            "url": url,
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        url = f"{self.BASE_URL}/{slug}"
        document = await self.fetch_optional(url)
        if document is None:
            return None
        return self.parse_detail(document.soup(), slug, url)

    def parse_servers(self, soup) -> List[Dict[str, str]]:
        servers = []
        main_player = soup.select_one("#main-player")
        if main_player is not None and main_player.get("src"):
            servers.append({"name": "Main Player", "url": self.absolute_url(main_player["src"]), "quality": "HD"})
        for anchor in soup.select(SERVER_LINK_SELECTORS):
            href = self.absolute_url(anchor.get("href", ""))
            if href.startswith("http") and not is_ad_frame(href):
                servers.append({"name": anchor.get_text(" ", strip=True), "url": href, "quality": "HD"})
        for frame in soup.select("iframe"):
            src = self.absolute_url(frame.get("src") or frame.get("data-src") or "")
            if src and not is_ad_frame(src) and "youtube" not in src:
                servers.append({"name": "Player", "url": src, "quality": "HD"})
        return servers

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        """Servers for a film page; the player tabs are only present after scripts run."""
        url = f"{self.BASE_URL}/{episode_slug}"
        document = await self.fetch_optional(url, render=True)
        if document is None:
            return None
        return normalize_servers(self.parse_servers(document.soup()))
