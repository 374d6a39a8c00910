# adapters/base_adapter.py
from abc import ABC
import logging
from typing import List, Optional
from urllib.parse import urljoin

from errors import UnsupportedOperationError, UpstreamStatusError
from models import ChapterContent, ContentDetail, ListingPage, StreamServer
from services.fetch_client import FetchClient, RawDocument

LOGGER = logging.getLogger(__name__)

OPERATIONS = (
    "list_latest",
    "list_by_genre",
    "list_by_country",
    "list_by_status",
    "list_by_season",
    "search",
    "get_detail",
    "get_episode_servers",
    "get_chapter_content",
)

NOT_FOUND_STATUSES = (404, 410)


class SourceAdapter(ABC):
    """
    Base class for every upstream source.

    A subclass overrides only the operations its upstream can serve; the
    remaining ones raise ``UnsupportedOperationError``. Listing operations
    return ``ListingPage``, single-item operations return ``None`` when the
    upstream reports the item as missing.
    """

    SOURCE_ID = ""
    DISPLAY_NAME = ""
    CONTENT_TYPE = ""
    BASE_URL = ""

    def __init__(self, fetch_client: FetchClient, session_manager=None):
        self.fetch_client = fetch_client
        self.session_manager = session_manager

    def supports(self, operation: str) -> bool:
        if operation not in OPERATIONS:
            return False
        return getattr(type(self), operation) is not getattr(SourceAdapter, operation)

    def _unsupported(self, operation: str):
        raise UnsupportedOperationError(self.SOURCE_ID, operation)

    def absolute_url(self, href: str) -> str:
        href = (href or "").strip()
        if not href:
            return ""
        if href.startswith("//"):
            return f"https:{href}"
        return urljoin(self.BASE_URL.rstrip("/") + "/", href)

    async def fetch_document(self, url: str, **kwargs) -> RawDocument:
        return await self.fetch_client.fetch(url, **kwargs)

    async def fetch_optional(self, url: str, **kwargs) -> Optional[RawDocument]:
        """Like ``fetch_document`` but a 404/410 means "not found" (``None``)."""
        try:
            return await self.fetch_client.fetch(url, **kwargs)
        except UpstreamStatusError as exc:
            if exc.status in NOT_FOUND_STATUSES:
                LOGGER.info("Not found source=%s url=%s", self.SOURCE_ID, url)
                return None
            raise

    async def list_latest(self, page: int = 1) -> ListingPage:
        self._unsupported("list_latest")

    async def list_by_genre(self, genre: str, page: int = 1) -> ListingPage:
        self._unsupported("list_by_genre")

    async def list_by_country(self, country: str, page: int = 1) -> ListingPage:
        self._unsupported("list_by_country")

    async def list_by_status(self, status: str, page: int = 1) -> ListingPage:
        self._unsupported("list_by_status")

    async def list_by_season(self, season: str, page: int = 1) -> ListingPage:
        self._unsupported("list_by_season")

    async def search(self, query: str, page: int = 1) -> ListingPage:
        self._unsupported("search")

    async def get_detail(self, slug: str) -> Optional[ContentDetail]:
        self._unsupported("get_detail")

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        self._unsupported("get_episode_servers")

    async def get_chapter_content(self, chapter_slug: str) -> Optional[ChapterContent]:
        self._unsupported("get_chapter_content")
