import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from utils.slug import CONTEXT_CHAPTER, CONTEXT_EPISODE, CONTEXT_TITLE, last_path_segment, resolve_slug


def test_episode_marker_is_stripped_with_everything_after_it():
    url = "https://x/episode/boruto-episode-293-sub-indo/"

    assert resolve_slug(url, CONTEXT_EPISODE) == "boruto"


def test_subtitle_suffix_without_episode_marker_keeps_number():
    url = "https://x/episode/one-piece-1120-subtitle-indonesia/"

    assert resolve_slug(url, CONTEXT_EPISODE) == "one-piece-1120"


def test_canonical_category_url_returns_segment_unchanged():
    assert resolve_slug("https://otakudesu.best/anime/boruto-sub-indo/") == "boruto-sub-indo"
    assert resolve_slug("https://anichin.watch/donghua/btth-season-5/") == "btth-season-5"
    assert resolve_slug("https://komiku.cc/komik/one-piece") == "one-piece"


def test_episode_and_canonical_urls_agree():
    from_episode = resolve_slug("https://anichin.watch/renegade-immortal-episode-70-subtitle-indonesia/", CONTEXT_EPISODE)
    from_canonical = resolve_slug(f"https://anichin.watch/donghua/{from_episode}/", CONTEXT_TITLE)

    assert from_episode == "renegade-immortal"
    assert from_canonical == from_episode


def test_chapter_context_strips_chapter_marker():
    assert resolve_slug("https://komiku.cc/one-piece-chapter-1100/", CONTEXT_CHAPTER) == "one-piece"
    assert resolve_slug("https://komiku.cc/solo-leveling-chapter-12.5/", CONTEXT_CHAPTER) == "solo-leveling"


def test_markers_are_case_insensitive():
    assert resolve_slug("https://x/Naruto-Episode-5-Sub-Indo", CONTEXT_EPISODE) == "Naruto"


def test_no_path_segment_yields_empty_slug():
    assert resolve_slug("https://x/") == ""
    assert resolve_slug("") == ""
    assert last_path_segment("https://x") == ""


def test_resolving_a_resolved_slug_is_stable():
    urls = [
        "https://x/episode/boruto-episode-293-sub-indo/",
        "https://x/one-piece-1120-subtitle-indonesia",
        "https://x/the-batman-2022",
    ]
    for url in urls:
        slug = resolve_slug(url, CONTEXT_EPISODE)
        assert resolve_slug(f"https://x/{slug}/", CONTEXT_EPISODE) == slug
