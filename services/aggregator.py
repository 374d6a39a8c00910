"""Public catalog surface over every registered source adapter.

Every operation resolves the source, wraps the adapter call in the cache and
applies the error policy: listing failures are logged and become an empty
page, single-item failures propagate to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

import config
from adapters.registry import build_adapters, build_session_manager, resolve_source_id
from errors import CatalogError, UnsupportedOperationError
from models import ChapterContent, ContentDetail, ListingPage, StreamServer
from services.cache_service import CacheService
from services.fetch_client import FetchClient

LOGGER = logging.getLogger(__name__)


def _encode_servers(servers: List[StreamServer]) -> List[Dict[str, Any]]:
    return [server.to_dict() for server in servers]


def _decode_servers(payload: List[Dict[str, Any]]) -> List[StreamServer]:
    return [StreamServer.from_dict(item) for item in payload or []]


class CatalogAggregator:
    def __init__(
        self,
        adapters: Optional[Mapping[str, Any]] = None,
        cache: Optional[CacheService] = None,
        fetch_client: Optional[FetchClient] = None,
    ):
        self.fetch_client = fetch_client or FetchClient()
        if adapters is None:
            adapters = build_adapters(self.fetch_client, build_session_manager(self.fetch_client))
        self.adapters = dict(adapters)
        self.cache = cache if cache is not None else CacheService.from_config()

    def adapter_for(self, source_kind: str):
        source_id = resolve_source_id(source_kind)
        adapter = self.adapters.get(source_id)
        if adapter is None:
            raise UnsupportedOperationError(source_id, "not configured")
        return adapter

    # --- Listings ---

    async def _listing(
        self,
        source_kind: str,
        operation: str,
        params: Dict[str, Any],
        call: Callable[[Any], Awaitable[ListingPage]],
    ) -> ListingPage:
        adapter = self.adapter_for(source_kind)
        if not adapter.supports(operation):
            raise UnsupportedOperationError(adapter.SOURCE_ID, operation)

        async def compute() -> Optional[ListingPage]:
            try:
                return await call(adapter)
            except UnsupportedOperationError:
                raise
            except CatalogError as exc:
                LOGGER.warning(
                    "Listing failed source=%s operation=%s params=%s: %s",
                    adapter.SOURCE_ID,
                    operation,
                    params,
                    exc,
                )
                return None
            except Exception:
                # Unexpected upstream shapes.
                LOGGER.exception(
                    "Listing crashed source=%s operation=%s params=%s",
                    adapter.SOURCE_ID,
                    operation,
                    params,
                )
                return None

        page = await self.cache.get_or_compute(
            adapter.SOURCE_ID,
            operation,
            params,
            compute,
            config.LISTING_CACHE_TTL_SECONDS,
            encode=lambda value: value.to_dict(),
            decode=ListingPage.from_dict,
        )
        # Failed listings are not cached; the next call retries upstream.
        return page if page is not None else ListingPage.empty()

    async def list_latest(self, source_kind: str, page: int = 1) -> ListingPage:
        return await self._listing(
            source_kind, "list_latest", {"page": page}, lambda adapter: adapter.list_latest(page)
        )

    async def list_by_genre(self, source_kind: str, genre: str, page: int = 1) -> ListingPage:
        return await self._listing(
            source_kind,
            "list_by_genre",
            {"genre": genre, "page": page},
            lambda adapter: adapter.list_by_genre(genre, page),
        )

    async def list_by_country(self, source_kind: str, country: str, page: int = 1) -> ListingPage:
        return await self._listing(
            source_kind,
            "list_by_country",
            {"country": country, "page": page},
            lambda adapter: adapter.list_by_country(country, page),
        )

    async def list_by_status(self, source_kind: str, status: str, page: int = 1) -> ListingPage:
        return await self._listing(
            source_kind,
            "list_by_status",
            {"status": status, "page": page},
            lambda adapter: adapter.list_by_status(status, page),
        )

    async def list_by_season(self, source_kind: str, season: str, page: int = 1) -> ListingPage:
        return await self._listing(
            source_kind,
            "list_by_season",
            {"season": season, "page": page},
            lambda adapter: adapter.list_by_season(season, page),
        )

    async def search(self, source_kind: str, query: str, page: int = 1) -> ListingPage:
        query = (query or "").strip()
        if not query:
            return ListingPage.empty()
        return await self._listing(
            source_kind,
            "search",
            {"query": query.lower(), "page": page},
            lambda adapter: adapter.search(query, page),
        )

    async def search_all(
        self,
        query: str,
        page: int = 1,
        source_kinds: Optional[Iterable[str]] = None,
    ) -> Dict[str, ListingPage]:
        """Search several sources concurrently; a failing source yields an empty page."""
        kinds = list(source_kinds if source_kinds is not None else config.COMBINED_SEARCH_SOURCES)
        results = await asyncio.gather(
            *(self.search(kind, query, page) for kind in kinds),
            return_exceptions=True,
        )
        combined: Dict[str, ListingPage] = {}
        for kind, result in zip(kinds, results):
            if isinstance(result, CatalogError):
                LOGGER.warning("Combined search skipped source=%s: %s", kind, result)
                result = ListingPage.empty()
            elif isinstance(result, Exception):
                LOGGER.error("Combined search crashed source=%s: %r", kind, result)
                result = ListingPage.empty()
            elif isinstance(result, BaseException):
                raise result
            combined[kind] = result
        return combined

    # --- Single items ---

    async def _single(
        self,
        source_kind: str,
        operation: str,
        params: Dict[str, Any],
        call: Callable[[Any], Awaitable[Any]],
        ttl_seconds: int,
        encode: Callable[[Any], Any],
        decode: Callable[[Any], Any],
    ):
        adapter = self.adapter_for(source_kind)
        if not adapter.supports(operation):
            raise UnsupportedOperationError(adapter.SOURCE_ID, operation)
        return await self.cache.get_or_compute(
            adapter.SOURCE_ID,
            operation,
            params,
            lambda: call(adapter),
            ttl_seconds,
            encode=encode,
            decode=decode,
        )

    async def get_detail(self, source_kind: str, slug: str) -> Optional[ContentDetail]:
        return await self._single(
            source_kind,
            "get_detail",
            {"slug": slug},
            lambda adapter: adapter.get_detail(slug),
            config.DETAIL_CACHE_TTL_SECONDS,
            lambda value: value.to_dict(),
            ContentDetail.from_dict,
        )

    async def get_episode_servers(self, source_kind: str, episode_slug: str) -> Optional[List[StreamServer]]:
        return await self._single(
            source_kind,
            "get_episode_servers",
            {"slug": episode_slug},
            lambda adapter: adapter.get_episode_servers(episode_slug),
            config.STREAM_CACHE_TTL_SECONDS,
            _encode_servers,
            _decode_servers,
        )

    async def get_chapter_content(self, source_kind: str, chapter_slug: str) -> Optional[ChapterContent]:
        return await self._single(
            source_kind,
            "get_chapter_content",
            {"slug": chapter_slug},
            lambda adapter: adapter.get_chapter_content(chapter_slug),
            config.DETAIL_CACHE_TTL_SECONDS,
            lambda value: value.to_dict(),
            ChapterContent.from_dict,
        )

    async def close(self) -> None:
        await self.fetch_client.close()
        await self.cache.close()
