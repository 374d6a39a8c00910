"""Unified catalog entities produced by the normalizer.

Every optional field defaults to an empty string or list so callers only ever
deal with one shape. ``to_dict``/``from_dict`` keep entities JSON friendly for
the cache layer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in (data or {}).items() if key in names}


@dataclass
class Episode:
    id: str
    number: str
    slug: str
    title: str
    date: str = ""
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Episode":
        return cls(**_known_fields(cls, data))


@dataclass
class Chapter:
    number: str
    slug: str
    title: str
    updated_at: str = ""
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chapter":
        return cls(**_known_fields(cls, data))


@dataclass
class StreamServer:
    name: str
    url: str
    quality: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamServer":
        return cls(**_known_fields(cls, data))


@dataclass
class ContentSummary:
    id: str
    title: str
    slug: str
    poster: str = ""
    type: str = ""
    rating: str = ""
    status: str = ""
    latest_marker: str = ""
    url: str = ""
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentSummary":
        return cls(**_known_fields(cls, data))


@dataclass
class ContentDetail(ContentSummary):
    synopsis: str = ""
    genres: List[str] = field(default_factory=list)
    episodes: List[Episode] = field(default_factory=list)
    chapters: List[Chapter] = field(default_factory=list)
    studio: str = ""
    author: str = ""
    released: str = ""
    duration: str = ""
    season: str = ""
    country: str = ""
    total_episodes: str = ""
    alternative_titles: List[str] = field(default_factory=list)
    cast: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentDetail":
        values = _known_fields(cls, data)
        values["episodes"] = [Episode.from_dict(item) for item in values.get("episodes") or []]
        values["chapters"] = [Chapter.from_dict(item) for item in values.get("chapters") or []]
        return cls(**values)


@dataclass
class ChapterContent:
    title: str
    slug: str
    parent_title: str = ""
    number: str = ""
    content: str = ""
    images: List[str] = field(default_factory=list)
    prev_slug: str = ""
    next_slug: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChapterContent":
        return cls(**_known_fields(cls, data))


@dataclass
class ListingPage:
    data: List[ContentSummary] = field(default_factory=list)
    has_next: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"data": [item.to_dict() for item in self.data], "has_next": self.has_next}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListingPage":
        return cls(
            data=[ContentSummary.from_dict(item) for item in (data or {}).get("data") or []],
            has_next=bool((data or {}).get("has_next")),
        )

    @classmethod
    def empty(cls) -> "ListingPage":
        return cls(data=[], has_next=False)


@dataclass
class SourceSession:
    source_id: str
    device_id: str
    token: str
    issued_at: float
    expires_at: Optional[float] = None

    def is_valid(self, now: float, skew_seconds: float = 0) -> bool:
        if not self.token:
            return False
        if self.expires_at is None:
            return True
        return now < self.expires_at - skew_seconds


@dataclass
class CacheEntry:
    key: str
    payload: Any
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "payload": self.payload, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(key=data["key"], payload=data.get("payload"), expires_at=float(data["expires_at"]))
