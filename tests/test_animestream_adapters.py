import asyncio
import base64
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from adapters.anichin import AnichinAdapter
from adapters.samehadaku import SamehadakuAdapter
from errors import NetworkError, UpstreamStatusError
from services.fetch_client import RawDocument

ANICHIN = AnichinAdapter.BASE_URL
SAMEHADAKU = SamehadakuAdapter.BASE_URL


def _card(base, href, title, episode="Ep 70"):
    return f"""
    <div class="bsx"><a href="{base}/{href}/" title="{title}">
      <div class="limit"><img src="https://cdn.test/{href}.jpg"><span class="epx">{episode}</span>
        <div class="typez Donghua">Donghua</div></div>
      <div class="tt">{title}<h2 itemprop="headline">{title}</h2></div>
    </a></div>
    """


LISTING_HTML = f"""
<div class="listupd">
  {_card(ANICHIN, "renegade-immortal-episode-70-subtitle-indonesia", "Renegade Immortal Episode 70 Subtitle Indonesia")}
  {_card(ANICHIN, "renegade-immortal-episode-69-subtitle-indonesia", "Renegade Immortal Episode 69 Subtitle Indonesia")}
  {_card(ANICHIN, "soul-land-2-episode-51-subtitle-indonesia", "Soul Land 2 Episode 51 Subtitle Indonesia", "Ep 51")}
</div>
<div class="hpage"><a class="r" href="{ANICHIN}/page/2/">Next</a></div>
"""

DETAIL_HTML = f"""
<div class="bigcontent">
  <div class="thumb"><img src="https://cdn.test/ri.jpg"></div>
  <div class="infox">
    <h1 class="entry-title">Renegade Immortal</h1>
    <span class="alter">Xian Ni, Renegade</span>
    <div class="spe">
      <span><b>Status:</b> Ongoing</span>
      <span><b>Studio:</b> Ruo Hong</span>
      <span><b>Season:</b> Winter 2024</span>
      <span><b>Type:</b> ONA</span>
    </div>
    <div class="genxed"><a href="/genres/action/">Action</a><a href="/genres/cultivation/">Cultivation</a></div>
  </div>
</div>
<div class="entry-content"><p>Wang Lin cultivates.</p></div>
<div class="eplister"><ul>
  <li><a href="{ANICHIN}/renegade-immortal-episode-2-subtitle-indonesia/">
    <div class="epl-num">2</div><div class="epl-title">Renegade Immortal Episode 2</div><div class="epl-date">May 2</div></a></li>
  <li><a href="{ANICHIN}/renegade-immortal-episode-1-subtitle-indonesia/">
    <div class="epl-num">1</div><div class="epl-title">Renegade Immortal Episode 1</div><div class="epl-date">May 1</div></a></li>
</ul></div>
"""


def _b64(value):
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


ANICHIN_EPISODE_HTML = f"""
<div class="player-embed"><iframe src="https://ok.test/embed/1"></iframe></div>
<select class="mirror">
  <option value="">Pilih Server Video</option>
  <option value="{_b64('<iframe src="https://dailymotion.test/embed/video/x1"></iframe>')}">Dailymotion 1080p</option>
  <option value="https://ok.test/embed/1">OK.ru</option>
  <option value="not-a-url">Broken</option>
</select>
"""

SAMEHADAKU_EPISODE_HTML = """
<div id="server"><ul>
  <li><div data-post="101" data-nume="1" data-type="schtml">Blogspot 720p</div></li>
  <li><div data-post="101" data-nume="2" data-type="schtml">Pucuk 480p</div></li>
  <li><div data-post="" data-nume="3">Nothing</div></li>
</ul></div>
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
        if callable(route):
            route = route(kwargs)
        if isinstance(route, BaseException):
            raise route
        return RawDocument(url=url, status=200, text=route)


def test_anichin_listing_collapses_episode_cards_into_series():
    adapter = AnichinAdapter(StubFetchClient({ANICHIN: LISTING_HTML}))

    page = asyncio.run(adapter.list_latest(1))

    assert [(item.slug, item.title) for item in page.data] == [
        ("renegade-immortal", "Renegade Immortal"),
        ("soul-land-2", "Soul Land 2"),
    ]
    assert page.data[0].url == f"{ANICHIN}/donghua/renegade-immortal/"
    assert page.data[0].type == "Donghua"
    assert page.data[0].latest_marker == "Ep 70"
    assert page.has_next is True


def test_anichin_season_listing_url():
    client = StubFetchClient({f"{ANICHIN}/season/winter-2024/page/1/": LISTING_HTML})
    adapter = AnichinAdapter(client)

    page = asyncio.run(adapter.list_by_season("winter-2024"))

    assert len(page.data) == 2


def test_anichin_search_passes_query_param():
    client = StubFetchClient({f"{ANICHIN}/page/1/": "<div class='listupd'></div>"})
    adapter = AnichinAdapter(client)

    page = asyncio.run(adapter.search("soul land"))

    assert page.data == []
    assert page.has_next is False
    assert client.calls[0][1]["params"] == {"s": "soul land"}


def test_anichin_detail():
    adapter = AnichinAdapter(StubFetchClient({f"{ANICHIN}/donghua/renegade-immortal/": DETAIL_HTML}))

    detail = asyncio.run(adapter.get_detail("renegade-immortal"))

    assert detail.title == "Renegade Immortal"
    assert detail.poster == "https://cdn.test/ri.jpg"
    assert detail.type == "ONA"
    assert detail.season == "Winter 2024"
    assert detail.genres == ["Action", "Cultivation"]
    assert detail.alternative_titles == ["Xian Ni", "Renegade"]
    assert [episode.number for episode in detail.episodes] == ["1", "2"]
    assert detail.episodes[0].slug == "renegade-immortal-episode-1-subtitle-indonesia"
    assert detail.episodes[0].date == "May 1"


def test_anichin_servers_decode_mirrors_and_dedupe():
    slug = "renegade-immortal-episode-1-subtitle-indonesia"
    adapter = AnichinAdapter(StubFetchClient({f"{ANICHIN}/{slug}/": ANICHIN_EPISODE_HTML}))

    servers = asyncio.run(adapter.get_episode_servers(slug))

    assert [(server.name, server.url, server.quality) for server in servers] == [
        ("Default Player", "https://ok.test/embed/1", "HD"),
        ("Dailymotion 1080p", "https://dailymotion.test/embed/video/x1", "1080p"),
    ]


def test_samehadaku_resolves_player_options_and_skips_failures(caplog):
    slug = "one-piece-episode-1120"

    def player_ajax(kwargs):
        nume = kwargs["data"]["nume"]
        if nume == "2":
            return NetworkError("ajax down")
        return f'<iframe src="https://blogger.test/video/{nume}"></iframe>'

    client = StubFetchClient(
        {
            f"{SAMEHADAKU}/{slug}/": SAMEHADAKU_EPISODE_HTML,
            f"{SAMEHADAKU}/wp-admin/admin-ajax.php": player_ajax,
        }
    )
    adapter = SamehadakuAdapter(client)

    servers = asyncio.run(adapter.get_episode_servers(slug))

    assert [(server.name, server.url, server.quality) for server in servers] == [
        ("Blogspot 720p", "https://blogger.test/video/1", "720p"),
    ]
    assert "Player option failed" in caplog.text


def test_missing_episode_is_none():
    adapter = SamehadakuAdapter(StubFetchClient({}))

    assert asyncio.run(adapter.get_episode_servers("gone")) is None
