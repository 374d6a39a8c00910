"""Canonical slug derivation from heterogeneous upstream URL shapes.

The cleanup rules below run in a fixed order. Episode markers are usually
followed by a localization suffix, so the marker is stripped first and the
suffix rules only ever see what is left of the title part.
"""

from __future__ import annotations

import re
from typing import Pattern, Sequence, Tuple
from urllib.parse import unquote, urlparse

CONTEXT_TITLE = "title"
CONTEXT_EPISODE = "episode"
CONTEXT_CHAPTER = "chapter"

CANONICAL_CATEGORIES = (
    "anime",
    "donghua",
    "komik",
    "manga",
    "novel",
    "series",
    "drama",
    "film",
)

_CANONICAL_RE = re.compile(
    r"^/(?:%s)/([^/?#]+)" % "|".join(CANONICAL_CATEGORIES),
    re.IGNORECASE,
)

SlugRule = Tuple[Pattern[str], str]

_EPISODE_MARKER: SlugRule = (re.compile(r"-episode-\d+.*$", re.IGNORECASE), "")
_CHAPTER_MARKER: SlugRule = (re.compile(r"-chapter-\d+.*$", re.IGNORECASE), "")
_SUBTITLE_INDONESIA: SlugRule = (re.compile(r"-subtitle-indonesia$", re.IGNORECASE), "")
_SUB_INDO: SlugRule = (re.compile(r"-sub-indo$", re.IGNORECASE), "")

SLUG_RULES = {
    CONTEXT_TITLE: (_EPISODE_MARKER, _SUBTITLE_INDONESIA, _SUB_INDO),
    CONTEXT_EPISODE: (_EPISODE_MARKER, _SUBTITLE_INDONESIA, _SUB_INDO),
    CONTEXT_CHAPTER: (_CHAPTER_MARKER, _SUBTITLE_INDONESIA, _SUB_INDO),
}


def path_segments(url: str) -> list:
    if not url:
        return []
    path = urlparse(str(url).strip()).path or ""
    return [unquote(segment) for segment in path.split("/") if segment]


def last_path_segment(url: str) -> str:
    segments = path_segments(url)
    return segments[-1] if segments else ""


def apply_rules(value: str, rules: Sequence[SlugRule]) -> str:
    for pattern, replacement in rules:
        value = pattern.sub(replacement, value)
    return value


def resolve_slug(url: str, context_kind: str = CONTEXT_TITLE) -> str:
    """Derive the canonical title slug for ``url``.

    Canonical ``/<category>/<slug>/`` URLs return the category segment as-is.
    Any other URL has its last path segment cleaned with the ordered rules for
    ``context_kind``. Returns ``""`` when the URL has no usable path segment.
    """
    if not url:
        return ""
    path = urlparse(str(url).strip()).path or ""
    match = _CANONICAL_RE.match(path)
    if match:
        return unquote(match.group(1))

    segment = last_path_segment(url)
    if not segment:
        return ""
    rules = SLUG_RULES.get(context_kind, SLUG_RULES[CONTEXT_TITLE])
    return apply_rules(segment, rules).strip("-")
