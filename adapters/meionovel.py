# adapters/meionovel.py
"""Meionovel (novel), a WordPress "Madara" theme site.

Chapter slugs are ``"{novel_slug}/{chapter_path}"`` because chapter pages
live under the novel (``/novel/{novel}/{chapter}/``).
"""

import logging
import re
from dataclasses import replace
from typing import Dict, List, Optional
from urllib.parse import quote

import config
from adapters.html_adapter import HtmlSourceAdapter, ListingPlan, select_texts
from errors import CatalogError, UnsupportedOperationError
from models import ChapterContent, ContentDetail, ListingPage
from services.normalizer import to_chapter, to_chapter_content, to_detail
from utils.extraction import SelectorRule, first_match
from utils.slug import CONTEXT_TITLE
from utils.text import clean_text, dedupe_strings, extract_number

LOGGER = logging.getLogger(__name__)

CHAPTERS_AJAX_ACTION = "manga_get_chapters"

# Origin and completion listings are novel tags.
COUNTRY_TAGS = {
    "china": "novel-china",
    "chinese": "novel-china",
    "jepang": "novel-jepang",
    "japan": "novel-jepang",
    "japanese": "novel-jepang",
    "korea": "novel-korea",
    "korean": "novel-korea",
}
STATUS_TAGS = {
    "tamat": "tamat",
    "completed": "tamat",
    "complete": "tamat",
}

CARD_PLAN = ListingPlan(
    containers=(".page-item-detail, .manga, article.bs",),
    title=(
        SelectorRule(".post-title h3 a"),
        SelectorRule(".post-title a"),
        SelectorRule("h3 a"),
        SelectorRule("a", "title"),
    ),
    link=(SelectorRule(".post-title a", "href"), SelectorRule("a", "href")),
    latest_marker=(SelectorRule(".chapter-item .chapter a"), SelectorRule(".list-chapter a")),
    type=(SelectorRule(".manga-title-badges"),),
    link_pattern=r"/novel/[^/]+",
    defaults={"type": "MTL"},
)

SEARCH_PLAN = replace(
    CARD_PLAN,
    containers=(
        ".c-tabs-item__content",
        ".search-wrap .row",
        ".c-blog__item",
        ".manga-item",
        ".page-item-detail",
        "article.search-result",
    ),
    title=(
        SelectorRule(".post-title a"),
        SelectorRule("h3 a"),
        SelectorRule("h4 a"),
        SelectorRule(".item-title a"),
        SelectorRule("a.link"),
    ),
    link=(
        SelectorRule(".post-title a", "href"),
        SelectorRule("h3 a", "href"),
        SelectorRule("h4 a", "href"),
        SelectorRule(".item-title a", "href"),
        SelectorRule("a.link", "href"),
    ),
    latest_marker=(),
    defaults={},
)

CHAPTER_ROW_SELECTORS = ".wp-manga-chapter, li.wp-manga-chapter, .version-chap li"
CONTENT_SELECTORS = ".text-left, .reading-content, .entry-content, .chapter-content"
_POST_ID_PATTERNS = (
    re.compile(r"manga_id[\"'\s:=]+(\d+)"),
    re.compile(r"post[_-]?id[\"'\s:=]+[\"']?(\d+)", re.IGNORECASE),
    re.compile(r"data-id[\"'\s=]+[\"']?(\d+)", re.IGNORECASE),
)
_CHAPTER_NUMBER_RE = re.compile(r"chapter\s*(\d+(?:\.\d+)?)", re.IGNORECASE)


def find_post_id(soup, html: str) -> str:
    """WordPress post id of the novel, needed for the chapter list AJAX call."""
    value = first_match(
        soup,
        (
            SelectorRule('input[name="manga_id"]', "value"),
            SelectorRule(".rating-post-id", "value"),
            SelectorRule(".rating-post-id", "data-id"),
            SelectorRule("[data-id]", "data-id"),
        ),
    )
    if value.isdigit():
        return value
    for pattern in _POST_ID_PATTERNS:
        match = pattern.search(html or "")
        if match:
            return match.group(1)
    return ""


def summary_value(soup, *labels: str) -> str:
    """``.post-content_item`` rows pair a heading with a ``.summary-content`` value."""
    for row in soup.select(".post-content_item, .post-status .post-content_item"):
        heading = clean_text(first_match(row, (SelectorRule(".summary-heading"), SelectorRule("h5")))).lower()
        value = first_match(row, (SelectorRule(".summary-content"),))
        if value and any(label in heading for label in labels):
            return value
    return ""


class MeionovelAdapter(HtmlSourceAdapter):
    SOURCE_ID = "meionovel"
    DISPLAY_NAME = "MeioNovel"
    CONTENT_TYPE = "novel"
    BASE_URL = config.MEIONOVEL_BASE_URL.rstrip("/")
    LISTING_PLANS = {"default": CARD_PLAN, "search": SEARCH_PLAN}
    NEXT_SELECTORS = (".nav-previous a", ".next", "a.nextpostslink", ".pagination .next")
    SLUG_CONTEXT = CONTEXT_TITLE

    def canonical_url(self, slug: str, link: str) -> str:
        return f"{self.BASE_URL}/novel/{slug}/"

    def _paged(self, path: str, page: int) -> str:
        base = f"{self.BASE_URL}/{path}"
        return f"{base}/" if page <= 1 else f"{base}/page/{page}/"

    async def list_latest(self, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged("novel", page), page)

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(self._paged(f"novel-genre/{quote(genre)}", page), page)

    async def list_by_country(self, country: str, page: int = 1) -> ListingPage:
        tag = COUNTRY_TAGS.get(country.strip().lower())
        if tag is None:
            raise UnsupportedOperationError(self.SOURCE_ID, f"list_by_country:{country}")
        return await self.fetch_listing(self._paged(f"novel-tag/{tag}", page), page)

    async def list_by_status(self, status: str, page: int = 1) -> ListingPage:
        tag = STATUS_TAGS.get(status.strip().lower())
        if tag is None:
            raise UnsupportedOperationError(self.SOURCE_ID, f"list_by_status:{status}")
        listing = await self.fetch_listing(self._paged(f"novel-tag/{tag}", page), page)
        for item in listing.data:
            item.status = item.status or "Completed"
        return listing

    async def search(self, query: str, page: int = 1) -> ListingPage:
        url = f"{self.BASE_URL}/" if page <= 1 else f"{self.BASE_URL}/page/{page}/"
        return await self.fetch_listing(url, page, "search", params={"s": query, "post_type": "wp-manga"})

    # --- Detail ---

    def chapter_slug(self, novel_slug: str, href: str) -> str:
        prefix = f"{self.BASE_URL}/novel/{novel_slug}/"
        if not href.startswith(prefix):
            return ""
        chapter_path = href[len(prefix):].strip("/")
        return f"{novel_slug}/{chapter_path}" if chapter_path else ""

    def parse_chapter_rows(self, soup, novel_slug: str) -> List[Dict[str, str]]:
        chapters = []
        seen = set()
        for row in soup.select(CHAPTER_ROW_SELECTORS):
            anchor = row.select_one("a")
            if anchor is None:
                continue
            href = self.absolute_url(anchor.get("href", ""))
            title = clean_text(anchor.get_text(" ", strip=True))
            slug = self.chapter_slug(novel_slug, href)
            if not title or not slug or slug in seen:
                continue
            seen.add(slug)
            number = _CHAPTER_NUMBER_RE.search(title)
            chapters.append(
                {
                    "number": number.group(1) if number else extract_number(title),
                    "title": title,
                    "slug": slug,
                    "updated_at": first_match(row, (SelectorRule(".chapter-release-date i"), SelectorRule("time"))),
                    "url": href,
                }
            )
        return chapters

    async def fetch_chapter_rows(self, post_id: str, novel_slug: str, referer: str) -> List[Dict[str, str]]:
        document = await self.fetch_document(
            f"{self.BASE_URL}/wp-admin/admin-ajax.php",
            method="POST",
            headers={"Referer": referer, "X-Requested-With": "XMLHttpRequest"},
            data={"action": CHAPTERS_AJAX_ACTION, "manga": post_id},
        )
        return self.parse_chapter_rows(document.soup(), novel_slug)

    def parse_detail(self, soup, slug: str, url: str) -> ContentDetail:
        synopsis = "\n\n".join(
            text for text in select_texts(soup, ".summary__content p, .description-summary p, .manga-excerpt p") if text
        )
        raw = {
            "id": slug,
            "slug": slug,
            "title": first_match(soup, (SelectorRule(".post-title h1"), SelectorRule("h1.entry-title")))
            or slug.replace("-", " ").title(),
            "poster": self.absolute_url(
                first_match(
                    soup,
                    (
                        SelectorRule(".summary_image img", "src"),
                        SelectorRule(".summary_image img", "data-src"),
                        SelectorRule(".summary_image img", "data-lazy-src"),
                        SelectorRule(".thumb img", "src"),
                    ),
                )
            ),
            "synopsis": synopsis,
            "type": first_match(soup, (SelectorRule(".manga-title-badges"),)) or "MTL",
            "status": summary_value(soup, "status"),
            "rating": first_match(soup, (SelectorRule(".post-total-rating .score"), SelectorRule("#averagerate"))),
            "author": first_match(soup, (SelectorRule(".author-content a"), SelectorRule('a[href*="novel-author"]'))),
            "released": first_match(soup, (SelectorRule('a[href*="novel-release"]'),)),
            "genres": dedupe_strings(select_texts(soup, '.genres-content a, a[href*="novel-genre"]')),
            "alternative_titles": [summary_value(soup, "alternative", "alt")],
            "chapters": self.parse_chapter_rows(soup, slug),
            "url": url,
        }
        return to_detail(raw, self.SOURCE_ID)

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        url = f"{self.BASE_URL}/novel/{slug}/"
        document = await self.fetch_optional(url)
        if document is None:
            return None
        soup = document.soup()
        detail = self.parse_detail(soup, slug, url)
        if detail.chapters:
            return detail

        # Newer theme versions load the chapter list over AJAX.
        post_id = find_post_id(soup, document.text)
        if not post_id:
            LOGGER.info("No chapters and no post id source=%s slug=%s", self.SOURCE_ID, slug)
            return detail
        try:
            rows = await self.fetch_chapter_rows(post_id, slug, url)
        except CatalogError as exc:
            LOGGER.warning("Chapter list request failed source=%s slug=%s: %s", self.SOURCE_ID, slug, exc)
            return detail
        detail.chapters = [chapter for chapter in (to_chapter(row) for row in rows) if chapter.slug]
        return detail

    # --- Chapters ---

    def nav_slug(self, soup, novel_slug: str, selectors: str) -> str:
        href = self.absolute_url(first_match(soup, (SelectorRule(selectors, "href"),)))
        return self.chapter_slug(novel_slug, href)

    def parse_chapter(self, soup, novel_slug: str, chapter_slug: str) -> ChapterContent:
        title = first_match(soup, (SelectorRule(".entry-title"), SelectorRule("h1.text-center"), SelectorRule(".chapter-title")))
        number = _CHAPTER_NUMBER_RE.search(title)
        container = soup.select_one(CONTENT_SELECTORS)
        paragraphs = select_texts(container, "p") if container is not None else []
        raw = {
            "title": title or chapter_slug,
            "slug": chapter_slug,
            "parent_title": first_match(
                soup,
                (
                    SelectorRule(".parent-title a"),
                    SelectorRule(".breadcrumb li:nth-child(2) a"),
                    SelectorRule('a[href*="/novel/"]'),
                ),
            ),
            "number": number.group(1) if number else "",
            "paragraphs": paragraphs,
            "content": container.get_text("\n", strip=True) if container is not None and not paragraphs else "",
            "prev_slug": self.nav_slug(soup, novel_slug, '.prev_page a, .nav-previous a, a[rel="prev"]'),
            "next_slug": self.nav_slug(soup, novel_slug, '.next_page a, .nav-next a, a[rel="next"]'),
        }
        return to_chapter_content(raw)

    async def get_chapter_content(self, chapter_slug: str) -> Optional[ChapterContent]:
        novel_slug, _, chapter_path = chapter_slug.strip("/").partition("/")
        if not chapter_path:
            LOGGER.info("Chapter slug without novel part source=%s slug=%s", self.SOURCE_ID, chapter_slug)
            return None
        document = await self.fetch_optional(f"{self.BASE_URL}/novel/{novel_slug}/{chapter_path}/")
        if document is None:
            return None
        return self.parse_chapter(document.soup(), novel_slug, chapter_slug)
