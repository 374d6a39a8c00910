"""Text cleanup helpers shared by the adapters."""

import re
import unicodedata

MAX_TITLE_LENGTH = 100

_WS_RE = re.compile(r"\s+", re.UNICODE)
_EPISODE_MARKER_RE = re.compile(r"\s*(?:[-–|:]\s*)?\bEpisode\s*\d+.*$", re.IGNORECASE)
_LOCALIZATION_SUFFIX_RES = (
    re.compile(r"\s*(?:[-–|]\s*)?Subtitle\s+Indonesia\s*$", re.IGNORECASE),
    re.compile(r"\s*(?:[-–|]\s*)?Sub\s+Indo\s*$", re.IGNORECASE),
)
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def clean_text(value):
    """Collapse whitespace; ``None`` and non-text become ``""``."""
    if value is None:
        return ""
    text = unicodedata.normalize("NFKC", str(value))
    return _WS_RE.sub(" ", text).strip()


def clean_title(value, max_length=MAX_TITLE_LENGTH):
    """Title pipeline: episode marker, then localization suffixes, then length."""
    text = clean_text(value)
    if not text:
        return ""
    text = _EPISODE_MARKER_RE.sub("", text).strip()
    for pattern in _LOCALIZATION_SUFFIX_RES:
        text = pattern.sub("", text).strip()
    if max_length and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def extract_number(value):
    """First integer or decimal found in ``value`` as a string, else ``""``."""
    match = _NUMBER_RE.search(clean_text(value))
    return match.group(0) if match else ""


def dedupe_strings(values):
    deduped = []
    seen = set()
    for raw in values or []:
        text = clean_text(raw)
        if not text:
            continue
        lowered = text.lower()
        if lowered in seen:
            continue
        seen.add(lowered)
        deduped.append(text)
    return deduped
