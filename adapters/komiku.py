# adapters/komiku.py
"""Komiku (comic).

Every card is an ``a[href*="/komik/"]``. The detail page only lists the
newest chapters until its "load more" button is clicked, so detail fetches
go through the render pool with a click loop.
"""

import logging
import re
from typing import Dict, List, Optional
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError

import config
from adapters.html_adapter import HtmlSourceAdapter, ListingPlan, select_texts, slug_from_href
from errors import UnsupportedOperationError
from models import ChapterContent, ContentDetail, ListingPage
from services.normalizer import to_chapter_content, to_detail
from utils.extraction import SelectorRule, first_match
from utils.slug import CONTEXT_TITLE
from utils.text import clean_text, dedupe_strings

LOGGER = logging.getLogger(__name__)

CARD_PLAN = ListingPlan(
    containers=('a[href*="/komik/"]',),
    title=(SelectorRule("h3"), SelectorRule("", "title")),
    link=(SelectorRule("", "href"),),
    latest_marker=(SelectorRule("span", pattern=r"(?i)((?:chapter\s*)?\d+(?:\.\d+)?)$"),),
    link_excludes=("-chapter-",),
)

# Countries map onto the publication type the site groups by.
COUNTRY_TYPES = {
    "manga": "manga",
    "japan": "manga",
    "jepang": "manga",
    "manhwa": "manhwa",
    "korea": "manhwa",
    "manhua": "manhua",
    "china": "manhua",
}

LOAD_MORE_RE = re.compile(r"tampilkan|lebih|load|more", re.IGNORECASE)
LOAD_MORE_PAUSE_MS = 300
SKIPPED_CHAPTER_WORDS = ("awal", "pertama", "first")
_CHAPTER_NUMBER_RE = re.compile(r"-chapter-(\d+(?:\.\d+)?)", re.IGNORECASE)
_RELATIVE_TIME_RE = re.compile(r"(\d+)\s*(menit|jam|hari|bulan|tahun)", re.IGNORECASE)
_CHAPTER_TITLE_RE = re.compile(r"(.+?)\s*[-–]\s*Chapter\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
_SLUG_CHAPTER_RE = re.compile(r"(.+?)-chapter-(\d+(?:\.\d+)?)", re.IGNORECASE)
_PUBLICATION_TYPE_RE = re.compile(r"^(manga|manhwa|manhua)$", re.IGNORECASE)

READER_IMAGE_SELECTORS = '[id*="readerarea"] img, .chapter-content img, .reading-content img, #chapter-content img'
IMAGE_SKIP_WORDS = ("logo", "icon", "avatar")
MIN_IMAGE_SIDE = 100


async def click_load_more(page, max_clicks: Optional[int] = None) -> int:
    """Click the chapter list "load more" button until it disappears."""
    limit = config.KOMIKU_LOAD_MORE_MAX_CLICKS if max_clicks is None else max_clicks
    clicks = 0
    button = page.locator("button", has_text=LOAD_MORE_RE)
    while clicks < limit:
        try:
            if await button.count() == 0:
                break
            await button.first.click()
        except PlaywrightError as exc:
            LOGGER.debug("Load more stopped after %s clicks: %s", clicks, exc)
            break
        clicks += 1
        await page.wait_for_timeout(LOAD_MORE_PAUSE_MS)
    return clicks


def _labelled_value(soup, label: str) -> str:
    """Value of a ``<span>Label:</span><span>value</span>`` pair or ``Label: value`` span."""
    for span in soup.select("span"):
        text = clean_text(span.get_text(" ", strip=True))
        lowered = text.lower()
        if lowered in (label, f"{label}:"):
            sibling = span.find_next_sibling()
            if sibling is not None:
                return clean_text(sibling.get_text(" ", strip=True))
        elif lowered.startswith(f"{label}:"):
            return clean_text(text.split(":", 1)[1])
    return ""


def _image_src(node) -> str:
    return clean_text(node.get("src") or node.get("data-src") or "")


def _too_small(node) -> bool:
    for attr in ("width", "height"):
        value = node.get(attr)
        if value and value.isdigit() and int(value) < MIN_IMAGE_SIDE:
            return True
    return False


class KomikuAdapter(HtmlSourceAdapter):
    SOURCE_ID = "komiku"
    DISPLAY_NAME = "Komiku"
    CONTENT_TYPE = "comic"
    BASE_URL = config.KOMIKU_BASE_URL.rstrip("/")
    LISTING_PLANS = {"default": CARD_PLAN}
    NEXT_SELECTORS = ('a[rel="next"]', ".next", 'a:-soup-contains("Next")', 'a:-soup-contains("NEXT")')
    SLUG_CONTEXT = CONTEXT_TITLE

    def canonical_url(self, slug: str, link: str) -> str:
        return f"{self.BASE_URL}/komik/{slug}"

    def fallback_title(self, slug: str) -> str:
        return slug.replace("-", " ").title()

    def _paged(self, path: str, page: int) -> str:
        base = f"{self.BASE_URL}/{path}"
        return base if page <= 1 else f"{base}/page/{page}"

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged("list", page), page)

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged(f"genre/{quote(genre.strip().lower())}", page), page)

    async def list_by_country(self, country: str, page: int = 1) -> ListingPage:
        publication_type = COUNTRY_TYPES.get(country.lower())
        if publication_type is None:
            raise UnsupportedOperationError(self.SOURCE_ID, f"list_by_country:{country}")
        listing = await self.fetch_listing(self._paged(publication_type, page), page)
        for item in listing.data:
            item.type = item.type or publication_type.title()
        return listing

    async def search(self, query: str, page: int = 1) -> ListingPage:
        if page > 1:
            return ListingPage.empty()
        listing = await self.fetch_listing(f"{self.BASE_URL}/search?q={quote(query)}", page)
        return ListingPage(data=listing.data, has_next=False)

    # --- Detail ---

    def parse_chapters(self, soup) -> List[Dict[str, str]]:
        chapters = []
        seen = set()
        for anchor in soup.select('a[href*="-chapter-"]'):
            href = self.absolute_url(anchor.get("href", ""))
            text = clean_text(anchor.get_text(" ", strip=True))
            if any(word in text.lower() for word in SKIPPED_CHAPTER_WORDS):
                continue
            parent_classes = " ".join(anchor.parent.get("class") or []) if anchor.parent is not None else ""
            if "btn" in parent_classes or "button" in parent_classes:
                continue
            if href in seen:
                continue
            seen.add(href)
            number = _CHAPTER_NUMBER_RE.search(href)
            if not number:
                continue
            updated = _RELATIVE_TIME_RE.search(text)
            chapters.append(
                {
                    "number": number.group(1),
                    "title": f"Chapter {number.group(1)}",
                    "slug": slug_from_href(href),
                    "url": href,
                    "updated_at": f"{updated.group(1)} {updated.group(2)}" if updated else "",
                }
            )
        chapters.sort(key=lambda chapter: float(chapter["number"]), reverse=True)
        return chapters

    def parse_detail(self, soup, slug: str, url: str) -> ContentDetail:
        publication_type = _labelled_value(soup, "type")
        released = re.search(r"\d{4}", _labelled_value(soup, "rilis"))
        synopsis = next(
            (text for text in select_texts(soup, "p") if len(text) > 100),
            "",
        )
        raw = {
            "id": slug,
            "slug": slug,
            "title": first_match(soup, (SelectorRule("h1"),)) or self.fallback_title(slug),
            "poster": self.absolute_url(
                first_match(soup, (SelectorRule('img[src*="komiku"]', "src"), SelectorRule('img[alt*="komik"]', "src")))
            ),
            "type": publication_type.title() if _PUBLICATION_TYPE_RE.match(publication_type) else "Manga",
            "author": _labelled_value(soup, "author"),
            "released": released.group(0) if released else "",
            "synopsis": synopsis,
            "genres": dedupe_strings(select_texts(soup, 'a[href*="/genre/"]')),
            "chapters": self.parse_chapters(soup),
            "url": url,
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        url = f"{self.BASE_URL}/komik/{slug}"
        document = await self.fetch_optional(url, render=True, page_actions=click_load_more)
        if document is None:
            return None
        detail = self.parse_detail(document.soup(), slug, url)
        LOGGER.info("Parsed detail source=%s slug=%s chapters=%s", self.SOURCE_ID, slug, len(detail.chapters))
        return detail

    # --- Chapters ---

    def parse_images(self, soup) -> List[str]:
        images = [_image_src(node) for node in soup.select(READER_IMAGE_SELECTORS)]
        images = [src for src in images if src]
        if images:
            return images
        for node in soup.select("img"):
            src = _image_src(node)
            lowered = src.lower()
            if not src or not any(word in lowered for word in ("img", "chapter", "komiku")):
                continue
            if any(word in lowered for word in IMAGE_SKIP_WORDS) or _too_small(node):
                continue
            images.append(src)
        return images

    def _nav_slug(self, soup, label: str, rel: str) -> str:
        href = first_match(
            soup,
            (
                SelectorRule(f'a[href*="-chapter-"]:-soup-contains("{label}")', "href"),
                SelectorRule(f'a[rel="{rel}"]', "href"),
            ),
        )
        return slug_from_href(href)

    def parse_chapter(self, soup, chapter_slug: str) -> ChapterContent:
        title = first_match(soup, (SelectorRule("h1"),)) or chapter_slug
        match = _CHAPTER_TITLE_RE.search(title) or _SLUG_CHAPTER_RE.search(chapter_slug)
        raw = {
            "title": title,
            "slug": chapter_slug,
            "parent_title": match.group(1).replace("-", " ") if match else "",
            "number": match.group(2) if match else "",
            "images": [self.absolute_url(src) for src in self.parse_images(soup)],
            "prev_slug": self._nav_slug(soup, "Prev", "prev"),
            "next_slug": self._nav_slug(soup, "Next", "next"),
        }
        return to_chapter_content(raw)

    async def get_chapter_content(self, chapter_slug: str) -> Optional[ChapterContent]:
        document = await self.fetch_optional(f"{self.BASE_URL}/{chapter_slug}")
        if document is None:
            return None
        return self.parse_chapter(document.soup(), chapter_slug)
