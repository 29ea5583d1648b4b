from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal
from urllib.parse import urlsplit

from bookmark_digest.app.services.html_text import (
    decode_entities,
    extract_meta,
    extract_title,
    first_paragraph,
)

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a",
        "about",
        "above",
        "after",
        "again",
        "all",
        "also",
        "an",
        "and",
        "any",
        "are",
        "as",
        "at",
        "back",
        "be",
        "because",
        "been",
        "before",
        "being",
        "below",
        "between",
        "both",
        "but",
        "by",
        "can",
        "could",
        "dare",
        "did",
        "do",
        "does",
        "down",
        "during",
        "each",
        "even",
        "every",
        "few",
        "first",
        "for",
        "from",
        "further",
        "get",
        "got",
        "had",
        "has",
        "have",
        "he",
        "her",
        "here",
        "his",
        "how",
        "i",
        "if",
        "in",
        "into",
        "is",
        "it",
        "its",
        "just",
        "like",
        "made",
        "make",
        "may",
        "might",
        "more",
        "most",
        "must",
        "my",
        "need",
        "new",
        "no",
        "nor",
        "not",
        "now",
        "of",
        "off",
        "on",
        "once",
        "one",
        "only",
        "or",
        "other",
        "ought",
        "our",
        "out",
        "over",
        "own",
        "same",
        "shall",
        "she",
        "should",
        "so",
        "some",
        "such",
        "than",
        "that",
        "the",
        "their",
        "then",
        "there",
        "these",
        "they",
        "this",
        "those",
        "through",
        "to",
        "too",
        "two",
        "under",
        "until",
        "up",
        "use",
        "used",
        "using",
        "very",
        "want",
        "was",
        "way",
        "we",
        "well",
        "were",
        "what",
        "when",
        "where",
        "which",
        "while",
        "who",
        "whom",
        "whose",
        "why",
        "will",
        "with",
        "would",
        "you",
        "your",
        # Web and script boilerplate.
        "click",
        "page",
        "website",
        "http",
        "https",
        "www",
        "com",
        "org",
        "net",
        "function",
        "window",
        "var",
        "const",
        "let",
        "return",
        "true",
        "false",
        "null",
        "undefined",
    }
)

CODE_TERMS: frozenset[str] = frozenset(
    {"script", "style", "div", "span", "class", "href", "src", "img", "onclick", "onload"}
)

CODE_MARKERS: tuple[str, ...] = ("function", "window.", "{", "var ", "ytcfg", "ytplayer")
KEYWORD_SCRIPT_MARKERS: tuple[str, ...] = ("function", "window.")

NO_DESCRIPTION_SUMMARY = "No description available for this page."
DESCRIPTION_MAX_CHARS = 400

Platform = Literal["youtube", "instagram", "linkedin", "twitter", "github"]

_PLATFORM_HOSTS: tuple[tuple[Platform, tuple[str, ...]], ...] = (
    ("youtube", ("youtube.com", "youtu.be")),
    ("instagram", ("instagram.com",)),
    ("linkedin", ("linkedin.com",)),
    ("twitter", ("twitter.com", "x.com")),
    ("github", ("github.com",)),
)

_TOKEN_SPLIT_PATTERN = re.compile(r"[\W_]+")
_TITLE_WORD_PATTERN = re.compile(r"[^\W_]+")
_RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})",
    re.ASCII,
)
_CALENDAR_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


@dataclass(frozen=True)
class ContentAnalysis:
    summary: str
    keywords: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {"summary": self.summary, "keywords": list(self.keywords)}

    def keywords_json(self) -> str:
        return json.dumps(list(self.keywords), ensure_ascii=False)


@dataclass(frozen=True)
class PageMetadata:
    title: str
    description: str
    site_name: str
    content_type: str
    author: str
    published_at: date | None


@dataclass(frozen=True)
class KeywordOptions:
    max_keywords: int = 15
    min_frequency: int = 2
    min_length: int = 3
    max_length: int = 25


DEFAULT_KEYWORD_OPTIONS = KeywordOptions()


def resolve_metadata(html: str) -> PageMetadata:
    title = _first_nonempty(
        extract_meta(html, "og:title"),
        extract_meta(html, "twitter:title"),
        extract_title(html),
    )
    description = _first_nonempty(
        extract_meta(html, "og:description"),
        extract_meta(html, "description"),
        extract_meta(html, "twitter:description"),
    )
    site_name = _first_nonempty(
        extract_meta(html, "og:site_name"),
        extract_meta(html, "application-name"),
    )
    author = _first_nonempty(
        extract_meta(html, "author"),
        extract_meta(html, "article:author"),
    )
    raw_published = _first_nonempty(
        extract_meta(html, "article:published_time"),
        extract_meta(html, "datePublished"),
    )
    return PageMetadata(
        title=title,
        description=description,
        site_name=site_name,
        content_type=extract_meta(html, "og:type"),
        author=author,
        published_at=parse_publish_date(raw_published),
    )


def compose_summary(html: str, url: str) -> str:
    """
    Build a short human-readable summary from page metadata.

    Fragments are appended in a fixed order: site attribution, content type,
    description (or the first prose paragraph), author, then publish date.
    Pages that yield nothing beyond a site attribution get a platform hint
    derived from the URL. Anything that looks like leaked script is thrown
    away in favour of the site name and title. The result is never empty.
    """

    metadata = resolve_metadata(html)
    parts: list[str] = []

    if metadata.site_name and metadata.site_name != metadata.title:
        parts.append(f"From {metadata.site_name}.")

    if metadata.content_type and metadata.content_type != "website":
        parts.append(f"{_title_case(metadata.content_type.replace('_', ' '))}.")

    description = decode_entities(metadata.description).strip()
    if description:
        if len(description) > DESCRIPTION_MAX_CHARS:
            description = f"{description[:DESCRIPTION_MAX_CHARS]}..."
        parts.append(description)
    else:
        paragraph = first_paragraph(html)
        if paragraph:
            parts.append(paragraph)

    if metadata.author:
        parts.append(f"By {metadata.author}.")

    if metadata.published_at is not None:
        parts.append(f"Published {format_publish_date(metadata.published_at)}.")

    if not parts or (len(parts) == 1 and metadata.site_name):
        platform_fragment = _platform_fragment(detect_platform(url), metadata.title)
        if platform_fragment:
            parts.append(platform_fragment)

    summary = " ".join(parts).strip()

    if contains_code_marker(summary):
        fallback_parts: list[str] = []
        if metadata.site_name and metadata.site_name != metadata.title:
            fallback_parts.append(f"From {metadata.site_name}.")
        if metadata.title:
            fallback_parts.append(metadata.title)
        summary = " ".join(
            part for part in fallback_parts if not contains_code_marker(part)
        ).strip()

    if not summary:
        return NO_DESCRIPTION_SUMMARY
    return summary


def extract_keywords(text: str, options: KeywordOptions = DEFAULT_KEYWORD_OPTIONS) -> list[str]:
    """
    Rank the most frequent meaningful tokens of `text`.

    Ties are broken by first appearance, so identical input always yields
    the same order.
    """

    if not text or any(marker in text for marker in KEYWORD_SCRIPT_MARKERS):
        return []

    # Insertion order of the dict doubles as the first-seen index.
    counts: dict[str, int] = {}
    for token in _TOKEN_SPLIT_PATTERN.split(text.lower()):
        if not _is_keyword_candidate(token, options):
            continue
        counts[token] = counts.get(token, 0) + 1

    ranked = sorted(
        (
            (count, first_seen, token)
            for first_seen, (token, count) in enumerate(counts.items())
            if count >= options.min_frequency
        ),
        key=lambda item: (-item[0], item[1]),
    )
    return [token for _, _, token in ranked[: options.max_keywords]]


def contains_code_marker(text: str) -> bool:
    return any(marker in text for marker in CODE_MARKERS)


def detect_platform(url: str) -> Platform | None:
    host = _url_host(url)
    if not host:
        return None
    for platform, domains in _PLATFORM_HOSTS:
        if any(host == domain or host.endswith(f".{domain}") for domain in domains):
            return platform
    return None


def _url_host(url: str) -> str:
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"//{candidate}"
    try:
        return (urlsplit(candidate).hostname or "").lower()
    except ValueError:
        return ""


def parse_publish_date(value: str) -> date | None:
    """Accept RFC 3339 timestamps or plain `YYYY-MM-DD` dates; anything else is `None`."""

    normalized = value.strip()
    try:
        if _RFC3339_PATTERN.fullmatch(normalized):
            return datetime.fromisoformat(normalized).date()
        if _CALENDAR_DATE_PATTERN.fullmatch(normalized):
            return date.fromisoformat(normalized)
    except ValueError:
        return None
    return None


def format_publish_date(value: date) -> str:
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def _is_keyword_candidate(token: str, options: KeywordOptions) -> bool:
    if len(token) < options.min_length or len(token) > options.max_length:
        return False
    if token in STOP_WORDS or token in CODE_TERMS:
        return False
    digits = sum(1 for character in token if character.isnumeric())
    return digits * 2 <= len(token)


def _platform_fragment(platform: Platform | None, title: str) -> str:
    if platform == "youtube":
        return f"YouTube video: {title}" if title else ""
    if platform == "instagram":
        return "Instagram post."
    if platform == "linkedin":
        return "LinkedIn content."
    if platform == "twitter":
        return "Twitter/X post."
    if platform == "github":
        return "GitHub repository or page."
    return ""


def _title_case(value: str) -> str:
    def _capitalize(match: re.Match[str]) -> str:
        word = match.group(0)
        return word[:1].upper() + word[1:]

    return _TITLE_WORD_PATTERN.sub(_capitalize, value)


def _first_nonempty(*candidates: str) -> str:
    for candidate in candidates:
        if candidate:
            return candidate
    return ""
