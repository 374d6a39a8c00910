import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from bs4 import BeautifulSoup

from errors import ParseError
from utils.extraction import KeyRule, SelectorRule, extract_required, first_match, has_any, select_items

CARD_HTML = """
<article class="bs">
  <a href="/anime/boruto/" title="Boruto (title attr)">
    <img data-src="/poster.jpg">
    <div class="tt"><h2></h2></div>
    <span class="epx">Ep 293</span>
  </a>
</article>
"""


def _card():
    return BeautifulSoup(CARD_HTML, "lxml").select_one("article")


def test_first_non_empty_rule_wins():
    rules = (SelectorRule(".tt h2"), SelectorRule("a", "title"), SelectorRule(".epx"))

    assert first_match(_card(), rules) == "Boruto (title attr)"


def test_attribute_fallback_chain():
    rules = (SelectorRule("img", "src"), SelectorRule("img", "data-src"))

    assert first_match(_card(), rules) == "/poster.jpg"


def test_pattern_narrows_value_to_capture_group():
    assert SelectorRule(".epx", pattern=r"(\d+)").apply(_card()) == "293"
    assert SelectorRule(".epx", pattern=r"season (\d+)").apply(_card()) == ""


def test_empty_selector_targets_the_node_itself():
    anchor = _card().select_one("a")

    assert SelectorRule("", "href").apply(anchor) == "/anime/boruto/"


def test_key_rule_reads_scalars_only():
    record = {"data": {"title": " Drama ", "tags": ["a"]}}

    assert KeyRule("data.title").apply(record) == "Drama"
    assert KeyRule("data.tags").apply(record) == ""


def test_extract_required_raises_parse_error_with_field():
    with pytest.raises(ParseError) as excinfo:
        extract_required(_card(), (SelectorRule(".missing"),), "title")

    assert excinfo.value.field == "title"


def test_select_items_uses_first_matching_container():
    soup = BeautifulSoup("<ul><li class='b'>1</li><li class='b'>2</li></ul><div class='c'>3</div>", "lxml")

    assert [node.get_text() for node in select_items(soup, (".a", ".b", ".c"))] == ["1", "2"]
    assert select_items(soup, (".x",)) == []
    assert has_any(soup, (".x", ".c")) is True
