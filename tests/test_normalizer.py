import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from models import ContentDetail
from services.normalizer import (
    normalize_listing,
    normalize_servers,
    to_chapter_content,
    to_detail,
    to_summary,
    unique_by_slug,
)


def test_summary_fills_missing_optional_fields_with_empty_strings():
    summary = to_summary({"slug": "boruto", "title": "Boruto", "rating": None}, "otakudesu")

    assert summary.id == "boruto"
    assert summary.source == "otakudesu"
    assert summary.poster == ""
    assert summary.rating == ""
    assert summary.latest_marker == ""


def test_listing_drops_untitled_items_and_duplicate_slugs_in_order():
    raws = [
        {"slug": "a", "title": "First A"},
        {"slug": "b", "title": ""},
        {"slug": "c", "title": "C"},
        {"slug": "a", "title": "Second A"},
    ]

    items = normalize_listing(raws, "anichin")

    assert [item.slug for item in items] == ["a", "c"]
    assert items[0].title == "First A"


def test_unique_by_slug_skips_empty_slugs():
    items = [to_summary({"slug": "", "title": "x"}, "s"), to_summary({"slug": "y", "title": "y"}, "s")]

    assert [item.slug for item in unique_by_slug(items)] == ["y"]


def test_servers_are_deduplicated_by_url_and_named():
    servers = normalize_servers(
        [
            {"name": "", "url": "https://a/embed"},
            {"name": "Mirror", "url": "https://a/embed"},
            {"name": "Mega", "url": "https://mega/embed", "quality": "720p"},
            {"name": "Empty", "url": ""},
        ]
    )

    assert [(server.name, server.url) for server in servers] == [
        ("Server 1", "https://a/embed"),
        ("Mega", "https://mega/embed"),
    ]
    assert servers[1].quality == "720p"


def test_detail_defaults_and_nested_entities():
    detail = to_detail(
        {
            "slug": "one-piece",
            "title": "One Piece",
            "genres": "Action, Adventure, action",
            "episodes": [{"slug": "op-1", "number": "1", "title": "Episode 1"}, {"slug": "", "title": "bad"}],
        },
        "otakudesu",
    )

    assert detail.genres == ["Action", "Adventure"]
    assert [episode.slug for episode in detail.episodes] == ["op-1"]
    assert detail.chapters == []
    assert detail.synopsis == ""
    assert detail.cast == []


def test_detail_round_trips_through_dict():
    detail = to_detail(
        {"slug": "x", "title": "X", "chapters": [{"slug": "x-chapter-1", "number": "1", "title": "Chapter 1"}]},
        "komiku",
    )

    restored = ContentDetail.from_dict(detail.to_dict())

    assert restored == detail


def test_chapter_content_joins_paragraphs_and_dedupes_images():
    content = to_chapter_content(
        {
            "title": "Chapter 1",
            "slug": "novel/chapter-1",
            "paragraphs": ["  First  line ", "", "Second"],
            "images": ["https://i/1.jpg", "https://i/1.jpg", ""],
        }
    )

    assert content.content == "First line\n\nSecond"
    assert content.images == ["https://i/1.jpg"]
    assert content.prev_slug == ""
