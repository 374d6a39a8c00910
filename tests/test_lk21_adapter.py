import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from adapters.lk21 import Lk21Adapter
from errors import UpstreamStatusError
from services.fetch_client import RawDocument

BASE = Lk21Adapter.BASE_URL

LISTING_HTML = f"""
<nav>
  <a href="{BASE}/genre/action"><img src="/icons/action.png" alt="Action"></a>
  <a href="{BASE}/page/2"><img src="/icons/next.png" alt="Next page"></a>
</nav>
<div class="gallery-grid">
  <article><a href="{BASE}/the-batman-2022" title="The Batman (2022)">
    <img src="https://cdn.test/batman.jpg" alt="The Batman"><span class="rating">8.1</span><span class="quality">HD</span>
  </a></article>
  <article><a href="{BASE}/dune-part-two-2024"><img src="/posters/dune.jpg" alt="Dune: Part Two"></a></article>
  <article><a href="{BASE}/the-batman-2022" title="The Batman (2022)"><img src="https://cdn.test/batman.jpg"></a></article>
  <article><a href="https://promo.other.test/watch-now" title="Promo Banner"><img src="/ads.jpg"></a></article>
  <article><a href="{BASE}/nested/path-film" title="Nested Film"><img src="/n.jpg"></a></article>
</div>
<div class="pagination">Halaman 1 dari 9 total halaman</div>
"""

DETAIL_HTML = """
<html><head>
  <meta property="og:image" content="https://cdn.test/batman-large.jpg">
  <title>The Batman (2022) | LK21</title>
</head><body>
  <h1>The Batman (2022)</h1>
  <div class="synopsis">Batman ventures into Gotham's underworld.</div>
  <div class="info">
    <span class="rating">IMDb 7.8</span>
    <span itemprop="duration">176 min</span>
    <a href="/genre/action">Action</a><a href="/genre/crime">Crime</a>
    <a href="/country/usa">USA</a>
    <a href="/director/matt-reeves">Matt Reeves</a>
    <a href="/artist/robert-pattinson">Robert Pattinson</a><a href="/artist/zoe-kravitz">Zoe Kravitz</a>
  </div>
</body></html>
"""

PLAYER_HTML = """
<iframe id="main-player" src="https://playeriframe.test/p/1"></iframe>
<ul id="player-list">
  <li><a href="https://playeriframe.test/p/2">CAST</a></li>
  <li><a href="https://playeriframe.test/p/1">P2P</a></li>
</ul>
<iframe src="https://www.youtube.com/embed/trailer"></iframe>
"""


class StubFetchClient:
    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    async def fetch(self, url, **kwargs):
        self.calls.append((url, kwargs))
        route = self.routes.get(url)
        if route is None:
            raise UpstreamStatusError(404, url)
        return RawDocument(url=url, status=200, text=route)


def test_listing_keeps_only_film_cards_and_reads_total_pages():
    adapter = Lk21Adapter(StubFetchClient({f"{BASE}/release": LISTING_HTML}))

    page = asyncio.run(adapter.list_latest(1))

    assert [(item.slug, item.title) for item in page.data] == [
        ("the-batman-2022", "The Batman (2022)"),
        ("dune-part-two-2024", "Dune: Part Two"),
    ]
    batman = page.data[0]
    assert batman.rating == "8.1"
    assert batman.type == "HD"
    assert page.data[1].poster == f"{BASE}/posters/dune.jpg"
    assert page.has_next is True


def test_last_reported_page_has_no_next():
    adapter = Lk21Adapter(StubFetchClient({f"{BASE}/year/2022/page/9": LISTING_HTML}))

    page = asyncio.run(adapter.list_by_season("2022", 9))

    assert len(page.data) == 2
    assert page.has_next is False


def test_search_is_rendered():
    client = StubFetchClient({f"{BASE}/search?s=the%20batman": LISTING_HTML})
    adapter = Lk21Adapter(client)

    page = asyncio.run(adapter.search("the batman"))

    assert len(page.data) == 2
    assert client.calls[0][1]["render"] is True
    assert page.has_next is False


def test_detail_reads_people_and_year_from_slug():
    adapter = Lk21Adapter(StubFetchClient({f"{BASE}/the-batman-2022": DETAIL_HTML}))

    detail = asyncio.run(adapter.get_detail("the-batman-2022"))

    assert detail.title == "The Batman (2022)"
    assert detail.poster == "https://cdn.test/batman-large.jpg"
    assert detail.rating == "7.8"
    assert detail.duration == "176 min"
    assert detail.released == "2022"
    assert detail.country == "USA"
    assert detail.studio == "Matt Reeves"
    assert detail.genres == ["Action", "Crime"]
    assert detail.cast == ["Robert Pattinson", "Zoe Kravitz"]
    assert detail.type == "Movie"


def test_servers_come_from_rendered_player_page():
    client = StubFetchClient({f"{BASE}/the-batman-2022": PLAYER_HTML})
    adapter = Lk21Adapter(client)

    servers = asyncio.run(adapter.get_episode_servers("the-batman-2022"))

    assert [(server.name, server.url) for server in servers] == [
        ("Main Player", "https://playeriframe.test/p/1"),
        ("CAST", "https://playeriframe.test/p/2"),
    ]
    assert client.calls[0][1]["render"] is True


def test_genre_and_country_listings_use_paged_paths():
    client = StubFetchClient({
        f"{BASE}/genre/action/page/2": LISTING_HTML,
        f"{BASE}/country/south%20korea": LISTING_HTML,
    })
    adapter = Lk21Adapter(client)

    by_genre = asyncio.run(adapter.list_by_genre("action", 2))
    by_country = asyncio.run(adapter.list_by_country("south korea"))

    assert [item.slug for item in by_genre.data] == ["the-batman-2022", "dune-part-two-2024"]
    assert by_genre.has_next is True
    assert len(by_country.data) == 2


def test_servers_for_missing_film_are_none():
    client = StubFetchClient({})
    adapter = Lk21Adapter(client)

    assert asyncio.run(adapter.get_episode_servers("no-such-film-2020")) is None
    assert client.calls[0][1]["render"] is True
