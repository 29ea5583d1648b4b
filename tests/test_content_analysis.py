from __future__ import annotations

import random
from datetime import date
from time import perf_counter

import pytest

from bookmark_digest.app.services.content_analysis import (
    CODE_TERMS,
    NO_DESCRIPTION_SUMMARY,
    STOP_WORDS,
    ContentAnalysis,
    KeywordOptions,
    compose_summary,
    detect_platform,
    extract_keywords,
    format_publish_date,
    parse_publish_date,
    resolve_metadata,
)
from bookmark_digest.app.services.html_text import extract_text

PROSE = (
    "Urban beekeeping has grown steadily as city dwellers discover that rooftops "
    "and balconies can host thriving hives."
)
SCRIPT_PAGE = (
    "<script>var x = {a:1};</script><p>Hello world, hello world, hello again.</p>"
)


def test_summary_uses_open_graph_description() -> None:
    html = (
        '<meta property="og:description" content="A great article about testing.">'
        "<title>Test Page</title>"
    )
    assert compose_summary(html, "https://example.com/post") == "A great article about testing."


def test_summary_assembles_fragments_in_order() -> None:
    html = """
    <meta property="og:site_name" content="Garden Weekly">
    <meta property="og:title" content="Spring Planting">
    <meta property="og:type" content="video_movie">
    <meta name="description" content="Everything about spring.">
    <meta name="author" content="Jane Doe">
    <meta property="article:published_time" content="2024-03-05T08:00:00Z">
    """
    assert compose_summary(html, "https://garden.example/spring") == (
        "From Garden Weekly. Video Movie. Everything about spring. "
        "By Jane Doe. Published March 5, 2024."
    )


def test_summary_skips_redundant_site_and_generic_type() -> None:
    html = """
    <meta property="og:site_name" content="Same Name">
    <meta property="og:title" content="Same Name">
    <meta property="og:type" content="website">
    <meta name="twitter:description" content="Fallback description.">
    <meta name="datePublished" content="2023-11-20">
    """
    assert compose_summary(html, "https://example.com") == (
        "Fallback description. Published November 20, 2023."
    )


def test_summary_truncates_long_descriptions() -> None:
    html = f'<meta property="og:description" content="{"a" * 450}">'
    assert compose_summary(html, "") == f"{'a' * 400}..."


def test_summary_falls_back_to_first_paragraph_in_description_slot() -> None:
    html = f'<meta name="author" content="Sam"><article><p>{PROSE}</p></article>'
    assert compose_summary(html, "https://example.com") == f"{PROSE} By Sam."


def test_summary_youtube_fallback_uses_title() -> None:
    html = '<meta property="og:title" content="My Video">'
    assert (
        compose_summary(html, "https://www.youtube.com/watch?v=abc123")
        == "YouTube video: My Video"
    )


def test_summary_platform_hint_follows_site_attribution() -> None:
    html = (
        '<meta property="og:site_name" content="YouTube">'
        '<meta property="og:title" content="My Video">'
    )
    assert compose_summary(html, "https://youtu.be/abc123") == (
        "From YouTube. YouTube video: My Video"
    )


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.instagram.com/p/xyz/", "Instagram post."),
        ("https://www.linkedin.com/posts/someone", "LinkedIn content."),
        ("https://twitter.com/someone/status/1", "Twitter/X post."),
        ("https://x.com/someone/status/1", "Twitter/X post."),
        ("https://github.com/owner/repo", "GitHub repository or page."),
        ("https://www.youtube.com/watch?v=abc", NO_DESCRIPTION_SUMMARY),
        ("https://example.com", NO_DESCRIPTION_SUMMARY),
    ],
)
def test_summary_platform_fallback_without_metadata(url: str, expected: str) -> None:
    assert compose_summary("<html><body></body></html>", url) == expected


def test_detect_platform_matches_hosts_not_substrings() -> None:
    assert detect_platform("https://www.youtube.com/watch?v=1") == "youtube"
    assert detect_platform("youtube.com/watch?v=1") == "youtube"
    assert detect_platform("https://gist.github.com/owner") == "github"
    assert detect_platform("https://dropbox.com/s/file") is None
    assert detect_platform("not a url at all") is None
    assert detect_platform("") is None


def test_summary_safety_net_rebuilds_from_site_and_title() -> None:
    html = """
    <meta property="og:site_name" content="Video Site">
    <meta property="og:title" content="Clean Title">
    <meta property="og:description" content="var ytcfg = window.ytcfg || {};">
    """
    assert compose_summary(html, "https://example.com") == "From Video Site. Clean Title"


def test_summary_safety_net_skips_site_matching_title() -> None:
    html = """
    <meta property="og:site_name" content="Same Name">
    <meta property="og:title" content="Same Name">
    <meta property="og:description" content="window.ytplayer = {};">
    """
    assert compose_summary(html, "https://example.com") == "Same Name"


def test_summary_safety_net_drops_script_like_title() -> None:
    html = """
    <meta property="og:title" content="window.init()">
    <meta property="og:description" content="function () { return 1; }">
    """
    assert compose_summary(html, "https://example.com") == NO_DESCRIPTION_SUMMARY


def test_summary_excludes_leaked_script_content() -> None:
    summary = compose_summary(SCRIPT_PAGE, "https://example.com")
    assert "var x" not in summary
    assert "{a:1}" not in summary
    assert summary


@pytest.mark.parametrize(
    "html",
    [
        "",
        "<<<>>>",
        "<meta property='og:title' content=''>",
        "\x00\xff\xfe<html",
        "<p>" + "function " * 50 + "</p>",
        "&#;&amp;&",
        "<title>function window.x</title><meta name='description' content='{}'>",
    ],
)
def test_summary_is_never_empty_and_never_leaks_markers(html: str) -> None:
    summary = compose_summary(html, "https://www.youtube.com/watch?v=1")
    assert summary
    assert "function" not in summary
    assert "window." not in summary
    assert "{" not in summary


def test_resolve_metadata_priorities() -> None:
    html = """
    <title>Title Tag</title>
    <meta name="twitter:title" content="Twitter Title">
    <meta name="description" content="Meta description">
    <meta name="twitter:description" content="Twitter description">
    <meta name="application-name" content="App Name">
    <meta property="article:author" content="Article Author">
    """
    metadata = resolve_metadata(html)
    assert metadata.title == "Twitter Title"
    assert metadata.description == "Meta description"
    assert metadata.site_name == "App Name"
    assert metadata.author == "Article Author"
    assert metadata.content_type == ""
    assert metadata.published_at is None


def test_parse_and_format_publish_dates() -> None:
    assert parse_publish_date("2024-03-05T08:00:00Z") == date(2024, 3, 5)
    assert parse_publish_date("2024-03-05T23:30:00+02:00") == date(2024, 3, 5)
    assert parse_publish_date("2023-11-20") == date(2023, 11, 20)
    assert parse_publish_date("yesterday") is None
    assert parse_publish_date("2023-13-45") is None
    assert parse_publish_date("2024-03-05T08:00:00.123Z") == date(2024, 3, 5)
    assert parse_publish_date("2024-01-15T10:00") is None
    assert parse_publish_date("2024-01-15T10:00:00") is None
    assert parse_publish_date("2024-01-15 10:00:00Z") is None
    assert parse_publish_date("2024-1-5") is None
    assert parse_publish_date("20240115") is None
    assert parse_publish_date("") is None
    assert format_publish_date(date(2024, 1, 2)) == "January 2, 2024"


def test_keywords_rank_by_frequency_and_drop_singletons() -> None:
    assert extract_keywords("cats cats cats dogs dogs birds") == ["cats", "dogs"]


def test_keywords_break_ties_by_first_occurrence() -> None:
    text = "zebra apple zebra apple mango mango"
    assert extract_keywords(text) == ["zebra", "apple", "mango"]


def test_keywords_return_nothing_for_script_like_text() -> None:
    assert extract_keywords("function foo foo bar bar") == []
    assert extract_keywords("window.location foo foo") == []
    assert extract_keywords("") == []


def test_keywords_apply_token_filters() -> None:
    text = (
        "the the and and ab ab 12345 12345 a1234 a1234 abc123 abc123 "
        "div div span span"
    )
    assert extract_keywords(text) == ["abc123"]


def test_keywords_respect_length_bounds() -> None:
    too_long = "x" * 26
    longest = "y" * 25
    text = f"{too_long} {too_long} {longest} {longest}"
    assert extract_keywords(text) == [longest]


def test_keywords_limit_to_fifteen() -> None:
    words = [f"topic{letter}" for letter in "abcdefghijklmnopqrst"]
    text = " ".join(words + words)
    assert extract_keywords(text) == words[:15]


def test_keywords_split_on_non_alphanumerics_and_keep_unicode() -> None:
    assert extract_keywords("snake_case snake_case") == ["snake", "case"]
    assert extract_keywords("Café café CAFÉ") == ["café"]


def test_keywords_honour_custom_options() -> None:
    options = KeywordOptions(max_keywords=2, min_frequency=3)
    text = "alpha alpha alpha beta beta beta gamma gamma delta delta delta"
    assert extract_keywords(text, options) == ["alpha", "beta"]


def test_keywords_from_script_page_text() -> None:
    keywords = extract_keywords(extract_text(SCRIPT_PAGE))
    assert keywords[0] == "hello"
    assert "world" in keywords
    assert "script" not in keywords
    assert not set(keywords) & STOP_WORDS


def test_keywords_are_deterministic_and_respect_invariants() -> None:
    rng = random.Random(7)
    vocabulary = sorted((STOP_WORDS | CODE_TERMS) - {"function"}) + [
        "garden",
        "tomato",
        "pepper",
        "compost",
        "seedling",
        "harvest",
        "mulch",
        "trellis",
        "sunlight",
        "watering",
        "pruning",
        "greenhouse",
        "soil",
        "2024",
        "x9",
        "ab",
        "a" * 30,
    ]
    text = " ".join(rng.choice(vocabulary) for _ in range(2000))

    first = extract_keywords(text)
    assert first == extract_keywords(text)
    assert len(first) <= 15
    assert len(first) == len(set(first))
    lowered_tokens = text.lower().split()
    for keyword in first:
        assert 3 <= len(keyword) <= 25
        assert keyword not in STOP_WORDS
        assert keyword not in CODE_TERMS
        assert lowered_tokens.count(keyword) >= 2


def test_content_analysis_serialization() -> None:
    analysis = ContentAnalysis(summary="Short.", keywords=("café", "garden"))
    assert analysis.to_dict() == {"summary": "Short.", "keywords": ["café", "garden"]}
    assert analysis.keywords_json() == '["café", "garden"]'


@pytest.mark.parametrize(
    "html",
    [
        "<meta" + " content='x'" * 40_000,
        "<a" * 250_000,
        '<meta name="description" content="' * 15_000,
        "<article><p>" + "word " * 100_000,
    ],
    ids=["meta-attributes", "open-tags", "unclosed-content", "unclosed-paragraph"],
)
def test_pipeline_stays_fast_on_hostile_pages(html: str) -> None:
    started_at = perf_counter()

    summary = compose_summary(html, "https://example.com")
    extract_keywords(extract_text(html))

    assert summary
    assert perf_counter() - started_at < 3.0
