"""Ordered extraction rules (fallback chains) for HTML and JSON payloads.

A field plan is a tuple of rules tried in order; the first rule that yields a
non-empty value wins and later rules are never consulted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from errors import ParseError
from utils.record import read_path
from utils.text import clean_text


@dataclass(frozen=True)
class SelectorRule:
    """CSS selector plus what to read from the first matching element.

    An empty ``selector`` targets the node itself. ``attr`` of ``None`` reads
    the element text. ``pattern`` optionally narrows the value to its first
    capture group.
    """

    selector: str = ""
    attr: Optional[str] = None
    pattern: Optional[str] = None

    def apply(self, node) -> str:
        if node is None:
            return ""
        element = node.select_one(self.selector) if self.selector else node
        if element is None:
            return ""
        if self.attr:
            raw = element.get(self.attr)
            if isinstance(raw, (list, tuple)):
                raw = " ".join(raw)
        else:
            raw = element.get_text(" ", strip=True)
        value = clean_text(raw)
        if value and self.pattern:
            match = re.search(self.pattern, value)
            value = clean_text(match.group(1)) if match else ""
        return value


@dataclass(frozen=True)
class KeyRule:
    """Dotted key path into a JSON record."""

    path: str

    def apply(self, record) -> str:
        value = read_path(record, self.path, None)
        if value is None or isinstance(value, (dict, list, tuple)):
            return ""
        return clean_text(value)


Rule = Union[SelectorRule, KeyRule]


def first_match(node: Any, rules: Sequence[Rule]) -> str:
    for rule in rules:
        value = rule.apply(node)
        if value:
            return value
    return ""


def extract_required(node: Any, rules: Sequence[Rule], field: str) -> str:
    value = first_match(node, rules)
    if not value:
        raise ParseError(field)
    return value


def select_items(soup, container_selectors: Sequence[str]) -> list:
    """Elements matched by the first container selector that finds anything."""
    if soup is None:
        return []
    for selector in container_selectors:
        items = soup.select(selector)
        if items:
            return list(items)
    return []


def has_any(soup, selectors: Sequence[str]) -> bool:
    if soup is None:
        return False
    return any(soup.select_one(selector) is not None for selector in selectors)
