"""Bounded pool of headless Chromium contexts for script-rendered upstreams.

One browser is launched lazily and shared; every render gets its own browser
context, acquired under a semaphore and closed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

import config
from errors import RenderError

LOGGER = logging.getLogger(__name__)

PageAction = Callable[[Any], Awaitable[None]]


class RenderPool:
    def __init__(
        self,
        size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        settle_seconds: Optional[float] = None,
        browser_factory: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        self.size = max(1, int(size or config.RENDER_POOL_SIZE))
        self.timeout_seconds = float(timeout_seconds or config.RENDER_TIMEOUT_SECONDS)
        self.settle_seconds = config.RENDER_SETTLE_SECONDS if settle_seconds is None else float(settle_seconds)
        self._browser_factory = browser_factory
        self._semaphore = asyncio.Semaphore(self.size)
        self._browser_lock = asyncio.Lock()
        self._playwright = None
        self._browser = None
        self.active_contexts = 0

    async def _launch_browser(self):
        if self._browser_factory is not None:
            return await self._browser_factory()
        self._playwright = await async_playwright().start()
        try:
            return await self._playwright.chromium.launch(headless=True)
        except PlaywrightError as exc:
            await self._playwright.stop()
            self._playwright = None
            raise RenderError(
                "Chromium launch failed. Install it with "
                "`python -m playwright install --with-deps chromium`."
            ) from exc

    async def _get_browser(self):
        async with self._browser_lock:
            if self._browser is None:
                self._browser = await self._launch_browser()
                LOGGER.info("Render pool browser started (size=%s)", self.size)
            return self._browser

    @asynccontextmanager
    async def page_scope(self, headers: Optional[Dict[str, str]] = None):
        async with self._semaphore:
            browser = await self._get_browser()
            context_kwargs: Dict[str, Any] = {}
            if headers:
                user_agent = next((v for k, v in headers.items() if k.lower() == "user-agent"), None)
                extra = {k: v for k, v in headers.items() if k.lower() != "user-agent"}
                if user_agent:
                    context_kwargs["user_agent"] = user_agent
                if extra:
                    context_kwargs["extra_http_headers"] = extra
            context = await browser.new_context(**context_kwargs)
            self.active_contexts += 1
            try:
                page = await context.new_page()
                yield page
            finally:
                self.active_contexts -= 1
                await context.close()

    async def _render_once(
        self,
        url: str,
        headers: Optional[Dict[str, str]],
        page_actions: Optional[PageAction],
        timeout_seconds: float,
    ) -> Tuple[int, str]:
        async with self.page_scope(headers) as page:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_seconds * 1000)
            status = response.status if response is not None else 200
            if status < 400:
                if page_actions is not None:
                    await page_actions(page)
                if self.settle_seconds > 0:
                    await asyncio.sleep(self.settle_seconds)
            html = await page.content()
            return status, html

    async def render(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        page_actions: Optional[PageAction] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Tuple[int, str]:
        """Return ``(status, html)`` for the fully resolved page."""
        timeout = float(timeout_seconds or self.timeout_seconds)
        try:
            return await asyncio.wait_for(
                self._render_once(url, headers, page_actions, timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise RenderError(f"render timed out after {timeout:g}s: {url}") from exc
        except PlaywrightError as exc:
            raise RenderError(f"render failed for {url}: {exc}") from exc

    async def close(self) -> None:
        browser, self._browser = self._browser, None
        if browser is not None:
            await browser.close()
        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            await playwright.stop()
