# adapters/anichin.py
from urllib.parse import quote

import config
from adapters.animestream import AnimestreamAdapter
from models import ListingPage


class AnichinAdapter(AnimestreamAdapter):
    SOURCE_ID = "anichin"
    DISPLAY_NAME = "Anichin"
    CONTENT_TYPE = "donghua"
    BASE_URL = config.ANICHIN_BASE_URL.rstrip("/")
    CATEGORY_PATH = "donghua"
    DEFAULT_TYPE = "Donghua"

    async def list_by_season(self, season: str, page: int = 1) -> ListingPage:
        return await self.fetch_listing(f"{self.BASE_URL}/season/{quote(season)}/page/{page}/", page)
