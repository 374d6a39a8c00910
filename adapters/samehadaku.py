# adapters/samehadaku.py
import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Optional

import config
from adapters.animestream import CARD_PLAN, AnimestreamAdapter
from adapters.html_adapter import is_ad_frame, quality_from_label
from errors import CatalogError
from models import StreamServer
from services.normalizer import normalize_servers
from utils.text import clean_text

LOGGER = logging.getLogger(__name__)

PLAYER_AJAX_ACTION = "player_ajax"


class SamehadakuAdapter(AnimestreamAdapter):
    SOURCE_ID = "samehadaku"
    DISPLAY_NAME = "Samehadaku"
    CONTENT_TYPE = "anime"
    BASE_URL = config.SAMEHADAKU_BASE_URL.rstrip("/")
    CATEGORY_PATH = "anime"
    DEFAULT_TYPE = "TV"
    LISTING_PLANS = {
        "default": replace(
            CARD_PLAN,
            containers=(".post-show ul li, .listupd .bs, .bsx, article.bs, .animepost",),
        )
    }

    def parse_player_options(self, soup) -> List[Dict[str, str]]:
        """``#server`` entries that only resolve through the player AJAX call."""
        options = []
        for node in soup.select("#server ul li div, .server ul li div"):
            post = node.get("data-post", "")
            nume = node.get("data-nume", "")
            if not post or not nume:
                continue
            label = clean_text(node.get_text(" ", strip=True))
            options.append(
                {
                    "post": post,
                    "nume": nume,
                    "type": node.get("data-type") or "video",
                    "name": label or f"Server {nume}",
                    "quality": quality_from_label(label) or "HD",
                }
            )
        return options

    async def resolve_player_option(self, option: Dict[str, str]) -> str:
        document = await self.fetch_document(
            f"{self.BASE_URL}/wp-admin/admin-ajax.php",
            method="POST",
            headers={"X-Requested-With": "XMLHttpRequest"},
            data={
                "action": PLAYER_AJAX_ACTION,
                "post": option["post"],
                "nume": option["nume"],
                "type": option["type"],
            },
        )
        frame = document.soup().select_one("iframe")
        return self.absolute_url(frame.get("src", "")) if frame is not None else ""

    async def get_episode_servers(self, episode_slug: str) -> Optional[List[StreamServer]]:
        document = await self.fetch_optional(f"{self.BASE_URL}/{episode_slug}/")
        if document is None:
            return None
        soup = document.soup()
        servers = self.parse_servers(soup)

        options = self.parse_player_options(soup)
        resolved = await asyncio.gather(
            *(self.resolve_player_option(option) for option in options),
            return_exceptions=True,
        )
        for option, result in zip(options, resolved):
            if isinstance(result, CatalogError):
                LOGGER.warning("Player option failed source=%s nume=%s: %s", self.SOURCE_ID, option["nume"], result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result and not is_ad_frame(result):
                servers.append({"name": option["name"], "url": result, "quality": option["quality"]})
        return normalize_servers(servers)
