"""Normalizes upstream paging conventions into ``ListingPage(data, has_next)``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from models import ListingPage
from utils.extraction import has_any


@dataclass(frozen=True)
class TotalPagesPaging:
    """Upstream reports its page count; ``extract_total`` reads it from the document.

    ``fallback`` decides when the document carries no page count at all.
    """

    extract_total: Callable[[object], int]
    fallback: Optional["AffordancePaging"] = None

    def has_next(self, page: int, document, raw_count: int) -> bool:
        if raw_count <= 0:
            return False
        total_pages = self.extract_total(document) or 0
        if total_pages <= 0 and self.fallback is not None:
            return self.fallback.has_next(page, document, raw_count)
        return page < total_pages


@dataclass(frozen=True)
class AffordancePaging:
    """No page count: rely on a "next" link or on full-page item counts."""

    next_selectors: Sequence[str] = ()
    page_size: Optional[int] = None

    def has_next(self, page: int, document, raw_count: int) -> bool:
        if raw_count <= 0:
            return False
        if self.page_size and raw_count < self.page_size:
            return False
        if self.next_selectors and has_any(document, self.next_selectors):
            return True
        return bool(self.page_size)


def total_pages_from_text(pattern: str) -> Callable[[object], int]:
    """Build an ``extract_total`` reading the page count out of document text."""
    compiled = re.compile(pattern, re.IGNORECASE)

    def _extract(document) -> int:
        if document is None:
            return 0
        text = document.get_text(" ", strip=True) if hasattr(document, "get_text") else str(document)
        match = compiled.search(text)
        return int(match.group(1)) if match else 0

    return _extract


def build_page(items, *, page: int, paging, document=None, raw_count: Optional[int] = None) -> ListingPage:
    """``raw_count`` is the upstream item count before de-duplication or drops."""
    count = len(items) if raw_count is None else raw_count
    return ListingPage(data=list(items), has_next=paging.has_next(page, document, count))


def slice_page(items, *, page: int, page_size: int) -> ListingPage:
    """Cut one page out of a result set the upstream returns all at once."""
    items = list(items)
    start = max(0, page - 1) * page_size
    end = start + page_size
    return ListingPage(data=items[start:end], has_next=end < len(items))
