"""Shared listing/detail plumbing for adapters that scrape HTML pages."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from adapters.base_adapter import SourceAdapter
from errors import ParseError
from models import ContentSummary, ListingPage
from services.normalizer import normalize_listing
from utils.extraction import Rule, SelectorRule, extract_required, first_match, select_items
from utils.pagination import AffordancePaging, build_page
from utils.slug import CONTEXT_EPISODE, resolve_slug
from utils.text import clean_text, clean_title

LOGGER = logging.getLogger(__name__)

OPTIONAL_LISTING_FIELDS = ("poster", "latest_marker", "rating", "status", "type")

AD_FRAME_MARKERS = ("facebook", "twitter", "ads")
_QUALITY_RE = re.compile(r"(\d{3,4})\s*p?", re.IGNORECASE)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]{20,}$")
_IFRAME_SRC_RE = re.compile(r"src=[\"']([^\"']+)[\"']", re.IGNORECASE)

POSTER_RULES = (
    SelectorRule("img", "src"),
    SelectorRule("img", "data-src"),
    SelectorRule("img", "data-lazy-src"),
)


@dataclass(frozen=True)
class ListingPlan:
    """Field plan for one listing context (home, category, search, ...).

    ``containers`` are alternatives: the first selector that matches any
    element supplies the item nodes. Each field is an ordered rule chain.
    """

    containers: Tuple[str, ...]
    title: Tuple[Rule, ...]
    link: Tuple[Rule, ...] = (SelectorRule("a", "href"),)
    poster: Tuple[Rule, ...] = POSTER_RULES
    latest_marker: Tuple[Rule, ...] = ()
    rating: Tuple[Rule, ...] = ()
    status: Tuple[Rule, ...] = ()
    type: Tuple[Rule, ...] = ()
    link_pattern: Optional[str] = None
    link_excludes: Tuple[str, ...] = ()
    defaults: Mapping[str, str] = field(default_factory=dict)


def is_ad_frame(src: str) -> bool:
    lowered = (src or "").lower()
    return any(marker in lowered for marker in AD_FRAME_MARKERS)


def quality_from_label(label: str) -> str:
    match = _QUALITY_RE.search(label or "")
    if match and match.group(1) in ("240", "360", "480", "540", "720", "1080", "1440", "2160"):
        return f"{match.group(1)}p"
    return ""


def decode_embedded_url(value: str) -> str:
    """Mirror values are either URLs or base64 encoded iframe HTML."""
    value = (value or "").strip()
    if value.startswith("http"):
        return value
    if not _BASE64_RE.match(value):
        return ""
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""
    match = _IFRAME_SRC_RE.search(decoded)
    if match:
        return match.group(1)
    decoded = decoded.strip()
    return decoded if decoded.startswith("http") else ""


def parse_info_pairs(soup, selectors: Sequence[str]) -> Dict[str, str]:
    """``Key: value`` info rows, keys lower-cased; first occurrence wins."""
    info: Dict[str, str] = {}
    for selector in selectors:
        for node in soup.select(selector):
            text = clean_text(node.get_text(" ", strip=True))
            if ":" not in text:
                continue
            key, value = text.split(":", 1)
            key = key.strip().lower()
            if key and key not in info:
                info[key] = value.strip()
    return info


def pick(info: Mapping[str, str], *keys: str) -> str:
    for key in keys:
        value = info.get(key)
        if value:
            return value
    return ""


def select_texts(soup, selector: str) -> List[str]:
    return [clean_text(node.get_text(" ", strip=True)) for node in soup.select(selector)]


def slug_from_href(href: str) -> str:
    parts = [part for part in (href or "").split("?")[0].split("/") if part]
    return parts[-1] if parts else ""


class HtmlSourceAdapter(SourceAdapter):
    LISTING_PLANS: Dict[str, ListingPlan] = {}
    NEXT_SELECTORS: Tuple[str, ...] = ()
    PAGE_SIZE: Optional[int] = None
    SLUG_CONTEXT = CONTEXT_EPISODE

    def paging(self):
        return AffordancePaging(next_selectors=self.NEXT_SELECTORS, page_size=self.PAGE_SIZE)

    def listing_plan(self, context: str) -> ListingPlan:
        return self.LISTING_PLANS.get(context) or self.LISTING_PLANS["default"]

    def slug_for(self, link: str) -> str:
        return resolve_slug(link, self.SLUG_CONTEXT)

    def canonical_url(self, slug: str, link: str) -> str:
        return link

    def fallback_title(self, slug: str) -> str:
        return ""

    def parse_listing_item(self, node, plan: ListingPlan) -> Dict[str, str]:
        link = self.absolute_url(extract_required(node, plan.link, "link"))
        if plan.link_pattern and not re.search(plan.link_pattern, link):
            raise ParseError("link", f"unexpected link shape {link}")
        if any(marker in link for marker in plan.link_excludes):
            raise ParseError("link", f"excluded link {link}")

        slug = self.slug_for(link)
        if not slug:
            raise ParseError("slug", link)
        title = clean_title(first_match(node, plan.title)) or self.fallback_title(slug)
        if not title:
            raise ParseError("title", link)

        raw = dict(plan.defaults)
        raw.update(id=slug, slug=slug, title=title, url=self.canonical_url(slug, link))
        for name in OPTIONAL_LISTING_FIELDS:
            value = first_match(node, getattr(plan, name))
            if value:
                raw[name] = self.absolute_url(value) if name == "poster" else value
        return raw

    def parse_listing(self, soup, context: str = "default") -> Tuple[List[ContentSummary], int]:
        """Normalized unique items plus the parsed count before de-duplication."""
        plan = self.listing_plan(context)
        nodes = select_items(soup, plan.containers)
        raws = []
        dropped = 0
        for node in nodes:
            try:
                raws.append(self.parse_listing_item(node, plan))
            except ParseError as exc:
                dropped += 1
                LOGGER.debug("Dropping listing item source=%s: %s", self.SOURCE_ID, exc)
        if dropped:
            LOGGER.info(
                "Dropped %s of %s listing nodes source=%s context=%s",
                dropped,
                len(nodes),
                self.SOURCE_ID,
                context,
            )
        return normalize_listing(raws, self.SOURCE_ID), len(raws)

    async def fetch_listing(
        self,
        url: str,
        page: int,
        context: str = "default",
        *,
        paging=None,
        render: bool = False,
        **fetch_kwargs,
    ) -> ListingPage:
        # WordPress themes answer 404 past the last page.
        document = await self.fetch_optional(url, render=render, **fetch_kwargs)
        if document is None:
            return ListingPage.empty()
        soup = document.soup()
        items, raw_count = self.parse_listing(soup, context)
        return build_page(items, page=page, paging=paging or self.paging(), document=soup, raw_count=raw_count)
