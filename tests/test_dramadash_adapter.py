import asyncio
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

import config
from adapters.dramadash import DramadashAdapter, episode_slug, parse_episode_slug
from errors import AuthError, ParseError
from services.fetch_client import RawDocument


def _drama(drama_id, name, genres=("Romance",)):
    return {
        "id": drama_id,
        "name": name,
        "poster": f"https://cdn.test/{drama_id}.jpg",
        "viewCount": "1.2M",
        "genres": [{"displayName": genre} for genre in genres],
    }


HOME_PAYLOAD = {
    "dramaList": [
        {"title": "Trending", "list": [_drama(101, "The CEO's Secret Wife"), _drama(102, "Revenge Bride")]},
        {"title": "New", "list": [_drama(101, "The CEO's Secret Wife")]},
    ],
    "bannerDramaList": [_drama(103, "Return of the Heiress", genres=("Drama", "Revenge"))],
}

DETAIL_PAYLOAD = {
    "drama": {
        "id": 101,
        "name": "The CEO's Secret Wife",
        "description": "A contract marriage turns real.",
        "genres": ["Romance", "CEO"],
        "episodes": [
            {"episodeNumber": 2, "videoUrl": "https://video.test/101/2.m3u8", "isLocked": True},
            {"episodeNumber": 1, "videoUrl": "https://video.test/101/1.m3u8", "isLocked": False},
        ],
    }
}


class StubSessionManager:
    def __init__(self, payloads):
        self.payloads = payloads
        self.calls = []

    async def authorized_fetch(self, source_id, url, *, method="GET", headers=None, params=None, json_body=None):
        self.calls.append({"source_id": source_id, "url": url, "method": method, "json_body": json_body})
        path = url[len(DramadashAdapter.BASE_URL):]
        return RawDocument(url=url, status=200, text=json.dumps(self.payloads[path]))


def _adapter(payloads):
    sessions = StubSessionManager(payloads)
    return DramadashAdapter(fetch_client=None, session_manager=sessions), sessions


def test_home_is_flattened_deduped_and_sliced(monkeypatch):
    monkeypatch.setattr(config, "DRAMADASH_PAGE_SIZE", 2)
    adapter, sessions = _adapter({"/home": HOME_PAYLOAD})

    first = asyncio.run(adapter.list_latest(1))
    second = asyncio.run(adapter.list_latest(2))

    assert [item.slug for item in first.data] == ["101", "102"]
    assert first.has_next is True
    assert [item.title for item in second.data] == ["Return of the Heiress"]
    assert second.has_next is False
    assert sessions.calls[0]["source_id"] == "dramadash"
    assert first.data[0].type == "Drama"


def test_search_posts_query_body():
    adapter, sessions = _adapter({"/search/text": {"data": [_drama(102, "Revenge Bride")]}})

    page = asyncio.run(adapter.search("revenge"))

    assert [item.slug for item in page.data] == ["102"]
    assert sessions.calls[0]["method"] == "POST"
    assert sessions.calls[0]["json_body"] == {"search": "revenge"}


def test_detail_orders_episodes_and_marks_locked_ones():
    adapter, _ = _adapter({"/drama/101": DETAIL_PAYLOAD})

    detail = asyncio.run(adapter.get_detail("101"))

    assert detail.title == "The CEO's Secret Wife"
    assert detail.synopsis == "A contract marriage turns real."
    assert detail.genres == ["Romance", "CEO"]
    assert detail.total_episodes == "2"
    assert [(episode.slug, episode.title) for episode in detail.episodes] == [
        ("101-episode-1", "Episode 1"),
        ("101-episode-2", "Episode 2 (Locked)"),
    ]


def test_non_numeric_detail_slug_is_not_found_without_calls():
    adapter, sessions = _adapter({})

    assert asyncio.run(adapter.get_detail("the-ceo")) is None
    assert sessions.calls == []


def test_episode_servers_for_open_locked_and_missing_episodes():
    adapter, _ = _adapter({"/drama/101": DETAIL_PAYLOAD})

    open_servers = asyncio.run(adapter.get_episode_servers("101-episode-1"))
    locked = asyncio.run(adapter.get_episode_servers("101-episode-2"))
    missing = asyncio.run(adapter.get_episode_servers("101-episode-9"))

    assert [(server.name, server.url, server.quality) for server in open_servers] == [
        ("DramaDash", "https://video.test/101/1.m3u8", "720p"),
    ]
    assert locked == []
    assert missing is None


def test_episode_slug_format():
    assert episode_slug(101, 3) == "101-episode-3"
    assert parse_episode_slug("101-episode-3") == ("101", 3)

    with pytest.raises(ParseError):
        parse_episode_slug("101-ep-3")


def test_adapter_without_session_manager_cannot_call_api():
    adapter = DramadashAdapter(fetch_client=None)

    with pytest.raises(AuthError):
        asyncio.run(adapter.list_latest())
