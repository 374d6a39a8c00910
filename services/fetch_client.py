"""HTTP and render-backed fetching with bounded retries.

Plain fetches go through one shared ``aiohttp.ClientSession``; render fetches
are delegated to the :class:`RenderPool`. Transport failures surface as
``NetworkError``/``RenderError`` (retried), non-2xx as ``UpstreamStatusError``
(not retried).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp
from bs4 import BeautifulSoup
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

import config
from errors import NetworkError, ParseError, RenderError, UpstreamStatusError
from services.render_pool import PageAction, RenderPool

LOGGER = logging.getLogger(__name__)


def merge_headers(*profiles: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Merge header profiles left to right; names compare case-insensitively."""
    merged: Dict[str, str] = {}
    names: Dict[str, str] = {}
    for profile in profiles:
        for key, value in (profile or {}).items():
            previous = names.get(key.lower())
            if previous is not None:
                merged.pop(previous, None)
            names[key.lower()] = key
            merged[key] = value
    return merged


@dataclass
class RawDocument:
    url: str
    status: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.text or "", "lxml")

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except (TypeError, ValueError) as exc:
            raise ParseError("json", f"{self.url}: {exc}") from exc


class FetchClient:
    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        render_pool: Optional[RenderPool] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self._render_pool = render_pool

    @property
    def render_pool(self) -> RenderPool:
        if self._render_pool is None:
            self._render_pool = RenderPool()
        return self._render_pool

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=config.FETCH_TOTAL_TIMEOUT_SECONDS,
                connect=config.FETCH_CONNECT_TIMEOUT_SECONDS,
                sock_read=config.FETCH_SOCK_READ_TIMEOUT_SECONDS,
            )
            connector = aiohttp.TCPConnector(limit=config.FETCH_CONCURRENCY_LIMIT, ttl_dns_cache=300)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._owns_session = True
        return self._session

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
        data: Any = None,
        timeout_seconds: Optional[float] = None,
        render: bool = False,
        page_actions: Optional[PageAction] = None,
    ) -> RawDocument:
        request_headers = merge_headers(config.CRAWLER_HEADERS, headers)
        attempts = config.RENDER_MAX_ATTEMPTS if render else config.FETCH_MAX_ATTEMPTS
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(
                multiplier=1,
                min=config.FETCH_RETRY_MIN_SECONDS,
                max=config.FETCH_RETRY_MAX_SECONDS,
            ),
            retry=retry_if_exception_type((NetworkError, RenderError)),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    LOGGER.warning(
                        "Retrying fetch (%s/%s) %s %s",
                        attempt.retry_state.attempt_number,
                        attempts,
                        method,
                        url,
                    )
                if render:
                    return await self._render(url, request_headers, page_actions, timeout_seconds)
                return await self._request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    json_body=json_body,
                    data=data,
                    timeout_seconds=timeout_seconds,
                )
        raise NetworkError(f"fetch gave up without a result: {url}")

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Optional[Mapping[str, Any]],
        json_body: Any,
        data: Any,
        timeout_seconds: Optional[float],
    ) -> RawDocument:
        session = await self._get_session()
        kwargs: Dict[str, Any] = {"headers": headers}
        if params:
            kwargs["params"] = {key: str(value) for key, value in params.items()}
        if json_body is not None:
            kwargs["json"] = json_body
        if data is not None:
            kwargs["data"] = data
        if timeout_seconds:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout_seconds)

        try:
            async with session.request(method.upper(), url, **kwargs) as response:
                text = await response.text(errors="replace")
                status = response.status
                response_headers = dict(response.headers)
                final_url = str(response.url)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"timed out fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"connection failed for {url}: {exc}") from exc

        if status < 200 or status >= 300:
            raise UpstreamStatusError(status, url)
        return RawDocument(url=final_url or url, status=status, text=text, headers=response_headers)

    async def _render(
        self,
        url: str,
        headers: Dict[str, str],
        page_actions: Optional[PageAction],
        timeout_seconds: Optional[float],
    ) -> RawDocument:
        status, html = await self.render_pool.render(
            url,
            headers=headers,
            page_actions=page_actions,
            timeout_seconds=timeout_seconds,
        )
        if status < 200 or status >= 300:
            raise UpstreamStatusError(status, url)
        return RawDocument(url=url, status=status, text=html)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        if self._render_pool is not None:
            await self._render_pool.close()
