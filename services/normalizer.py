"""Maps adapter field bags (plain dicts) onto the catalog entities.

Adapters never build entities themselves; they hand over dicts and this
module fills every missing optional field with an empty value.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from models import (
    Chapter,
    ChapterContent,
    ContentDetail,
    ContentSummary,
    Episode,
    StreamServer,
)
from utils.record import read_field
from utils.text import clean_text, dedupe_strings

_SUMMARY_FIELDS = ("poster", "type", "rating", "status", "latest_marker", "url")
_DETAIL_TEXT_FIELDS = (
    "synopsis",
    "studio",
    "author",
    "released",
    "duration",
    "season",
    "country",
    "total_episodes",
)


def _text(raw: Optional[Mapping[str, Any]], key: str) -> str:
    return clean_text(read_field(raw, key, ""))


def _strings(raw: Optional[Mapping[str, Any]], key: str) -> List[str]:
    value = read_field(raw, key, None)
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    return dedupe_strings(value)


def to_summary(raw: Mapping[str, Any], source: str) -> ContentSummary:
    slug = _text(raw, "slug")
    return ContentSummary(
        id=_text(raw, "id") or slug,
        title=_text(raw, "title"),
        slug=slug,
        source=source,
        **{name: _text(raw, name) for name in _SUMMARY_FIELDS},
    )


def unique_by_slug(items: Iterable[ContentSummary]) -> List[ContentSummary]:
    """Drop later items whose slug was already seen; keep original order."""
    unique: List[ContentSummary] = []
    seen = set()
    for item in items:
        if not item.slug or item.slug in seen:
            continue
        seen.add(item.slug)
        unique.append(item)
    return unique


def normalize_listing(raws: Iterable[Mapping[str, Any]], source: str) -> List[ContentSummary]:
    summaries = [to_summary(raw, source) for raw in raws]
    return unique_by_slug(item for item in summaries if item.title)


def to_episode(raw: Mapping[str, Any]) -> Episode:
    slug = _text(raw, "slug")
    return Episode(
        id=_text(raw, "id") or slug,
        number=_text(raw, "number"),
        slug=slug,
        title=_text(raw, "title"),
        date=_text(raw, "date"),
        url=_text(raw, "url"),
    )


def to_chapter(raw: Mapping[str, Any]) -> Chapter:
    return Chapter(
        number=_text(raw, "number"),
        slug=_text(raw, "slug"),
        title=_text(raw, "title"),
        updated_at=_text(raw, "updated_at"),
        url=_text(raw, "url"),
    )


def to_stream_server(raw: Mapping[str, Any]) -> StreamServer:
    return StreamServer(
        name=_text(raw, "name"),
        url=_text(raw, "url"),
        quality=_text(raw, "quality"),
    )


def normalize_servers(raws: Iterable[Mapping[str, Any]]) -> List[StreamServer]:
    servers: List[StreamServer] = []
    seen = set()
    for raw in raws:
        server = to_stream_server(raw)
        if not server.url or server.url in seen:
            continue
        seen.add(server.url)
        if not server.name:
            server.name = f"Server {len(servers) + 1}"
        servers.append(server)
    return servers


def to_detail(raw: Mapping[str, Any], source: str) -> ContentDetail:
    summary = to_summary(raw, source)
    episodes = [to_episode(item) for item in read_field(raw, "episodes", None) or []]
    chapters = [to_chapter(item) for item in read_field(raw, "chapters", None) or []]
    values: Dict[str, Any] = {name: _text(raw, name) for name in _DETAIL_TEXT_FIELDS}
    return ContentDetail(
        **summary.to_dict(),
        genres=_strings(raw, "genres"),
        episodes=[item for item in episodes if item.slug],
        chapters=[item for item in chapters if item.slug],
        alternative_titles=_strings(raw, "alternative_titles"),
        cast=_strings(raw, "cast"),
        **values,
    )


def to_chapter_content(raw: Mapping[str, Any]) -> ChapterContent:
    paragraphs = read_field(raw, "paragraphs", None) or []
    content = _text(raw, "content") if not paragraphs else ""
    if paragraphs:
        content = "\n\n".join(text for text in (clean_text(p) for p in paragraphs) if text)
    images = [clean_text(src) for src in read_field(raw, "images", None) or [] if clean_text(src)]
    return ChapterContent(
        title=_text(raw, "title"),
        slug=_text(raw, "slug"),
        parent_title=_text(raw, "parent_title"),
        number=_text(raw, "number"),
        content=content,
        images=list(dict.fromkeys(images)),
        prev_slug=_text(raw, "prev_slug"),
        next_slug=_text(raw, "next_slug"),
    )
