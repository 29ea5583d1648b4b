from __future__ import annotations

import re
from collections.abc import Iterator

ENTITY_REPLACEMENTS: dict[str, str] = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&mdash;": "—",
    "&ndash;": "–",
    "&hellip;": "...",
    "&copy;": "©",
    "&reg;": "®",
    "&trade;": "™",
}

_ENTITY_PATTERN = re.compile(
    "|".join(re.escape(entity) for entity in ENTITY_REPLACEMENTS) + r"|&#\d+;"
)

_SCRIPT_LIKE_TAGS: tuple[str, ...] = ("script", "style", "noscript")
BOILERPLATE_TAGS: tuple[str, ...] = ("nav", "footer", "header", "aside", "menu")

# Every scan inside a tag stops at the next "<", so hostile markup such as
# thousands of unterminated tags costs linear time.
_BlockPatterns = tuple[re.Pattern[str], re.Pattern[str]]


def _block_patterns(tag: str) -> _BlockPatterns:
    return (
        re.compile(rf"<{tag}\b[^<>]*>", re.IGNORECASE),
        re.compile(rf"</{tag}\s*>", re.IGNORECASE),
    )


_SCRIPT_LIKE_BLOCKS: tuple[_BlockPatterns, ...] = tuple(
    _block_patterns(tag) for tag in _SCRIPT_LIKE_TAGS
)
_BOILERPLATE_BLOCKS: tuple[_BlockPatterns, ...] = tuple(
    _block_patterns(tag) for tag in BOILERPLATE_TAGS
)
_ARTICLE_BLOCK = _block_patterns("article")
_PARAGRAPH_BLOCK: _BlockPatterns = (
    re.compile(r"<p(?:\s[^<>]*)?>", re.IGNORECASE),
    re.compile(r"</p\s*>", re.IGNORECASE),
)

_TAG_PATTERN = re.compile(r"<[^<>]+>")
_UNTERMINATED_TAG_PATTERN = re.compile(r"<[A-Za-z/!][^<>]*\Z")
_TAG_OPENER_PATTERN = re.compile(r"<(?=[A-Za-z/!])")
_BRACE_SPAN_PATTERN = re.compile(r"\{[^{}]*\}")
_BRACKET_SPAN_PATTERN = re.compile(r"\[[^\[\]]*\]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

_TITLE_PATTERN = re.compile(r"<title[^<>]*>([^<]+)</title>", re.IGNORECASE)

# Quoted values may hold ">" but never "<", which keeps each tag scan bounded.
_META_TAG_PATTERN = re.compile(
    r"""<meta\b(?:[^<>"']+|"[^<"]*"|'[^<']*'|["'])*""",
    re.IGNORECASE,
)
_ATTRIBUTE_PATTERN = re.compile(
    r"""\s([^\s=<>"'/]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'<>]*))"""
)
_META_KEY_ATTRIBUTES: tuple[str, ...] = ("property", "name")

PARAGRAPH_MIN_CHARS = 100
PARAGRAPH_MIN_CLEAN_CHARS = 50
PARAGRAPH_MAX_CHARS = 300
PARAGRAPH_MAX_CANDIDATES = 5
PARAGRAPH_CODE_MARKERS: tuple[str, ...] = ("{", "function", "var ")


def decode_entities(text: str) -> str:
    """
    Replace the supported named entities and blank out numeric ones.

    A single left-to-right pass is used, so text produced by a substitution
    (for example the `&` from `&amp;lt;`) is never decoded a second time.
    """

    return _ENTITY_PATTERN.sub(_replace_entity, text)


def _replace_entity(match: re.Match[str]) -> str:
    return ENTITY_REPLACEMENTS.get(match.group(0), " ")


def extract_text(html: str) -> str:
    """
    Approximate the visible text of an HTML document.

    Script-like blocks go first, then boilerplate containers, then every
    remaining tag. Entities are decoded afterwards and leftover inline
    object/array literals are dropped before whitespace is collapsed.
    """

    if not html:
        return ""

    text = html
    for block in _SCRIPT_LIKE_BLOCKS:
        # Unclosed script/style blocks run to the end of the document, as in browsers.
        text = _remove_blocks(text, block, strip_unclosed=True)
    for block in _BOILERPLATE_BLOCKS:
        text = _remove_blocks(text, block, strip_unclosed=False)

    text = _TAG_PATTERN.sub(" ", text)
    text = _UNTERMINATED_TAG_PATTERN.sub(" ", text)
    text = decode_entities(text)
    text = _TAG_OPENER_PATTERN.sub("< ", text)
    text = _BRACE_SPAN_PATTERN.sub(" ", text)
    text = _BRACKET_SPAN_PATTERN.sub(" ", text)
    return collapse_whitespace(text)


def _iter_blocks(text: str, block: _BlockPatterns) -> Iterator[tuple[int, int, int, int]]:
    """Yield `(open_start, inner_start, inner_end, close_end)` for each closed block."""

    opener, closer = block
    position = 0
    while True:
        opening = opener.search(text, position)
        if opening is None:
            return
        closing = closer.search(text, opening.end())
        if closing is None:
            return
        yield opening.start(), opening.end(), closing.start(), closing.end()
        position = closing.end()


def _remove_blocks(text: str, block: _BlockPatterns, *, strip_unclosed: bool) -> str:
    pieces: list[str] = []
    position = 0
    for open_start, _, _, close_end in _iter_blocks(text, block):
        pieces.append(text[position:open_start])
        pieces.append(" ")
        position = close_end

    if strip_unclosed:
        dangling = block[0].search(text, position)
        if dangling is not None:
            pieces.append(text[position : dangling.start()])
            pieces.append(" ")
            return "".join(pieces)

    pieces.append(text[position:])
    return "".join(pieces)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def strip_tags(fragment: str) -> str:
    stripped = _TAG_PATTERN.sub("", fragment)
    return _UNTERMINATED_TAG_PATTERN.sub("", stripped)


def extract_meta(html: str, name: str) -> str:
    """
    Return the `content` of the best `<meta>` tag keyed by `name`.

    The key may appear as either a `property=` or a `name=` attribute, before
    or after `content=`. Across the document, `property` beats `name` and a
    key written before its content beats one written after; ties go to the
    earliest tag. Returns an empty string when no tag matches.
    """

    if not html or not name:
        return ""

    key = name.lower()
    best_rank: int | None = None
    best_value = ""
    for tag in _META_TAG_PATTERN.finditer(html):
        ranked = _rank_meta_tag(tag.group(0), key)
        if ranked is None:
            continue
        rank, value = ranked
        if best_rank is None or rank < best_rank:
            best_rank, best_value = rank, value
            if rank == 0:
                break
    return decode_entities(best_value).strip()


def _rank_meta_tag(tag: str, key: str) -> tuple[int, str] | None:
    key_positions: dict[str, int] = {}
    contents: list[tuple[int, str]] = []
    for position, attribute in enumerate(_ATTRIBUTE_PATTERN.finditer(tag)):
        attribute_name = attribute.group(1).lower()
        quoted = attribute.group(2) if attribute.group(2) is not None else attribute.group(3)
        if quoted is None:
            continue
        if attribute_name == "content":
            if quoted:
                contents.append((position, quoted))
        elif attribute_name in _META_KEY_ATTRIBUTES and quoted.lower() == key:
            key_positions.setdefault(attribute_name, position)

    if not contents:
        return None
    for offset, attribute_name in enumerate(_META_KEY_ATTRIBUTES):
        key_position = key_positions.get(attribute_name)
        if key_position is None:
            continue
        after = [value for position, value in contents if position > key_position]
        if after:
            return offset * 2, after[0]
        return offset * 2 + 1, contents[0][1]
    return None


def extract_title(html: str) -> str:
    if not html:
        return ""
    match = _TITLE_PATTERN.search(html)
    if match is None:
        return ""
    return collapse_whitespace(decode_entities(match.group(1)))


def first_paragraph(html: str) -> str:
    """Return the first paragraph that reads like prose, or an empty string."""

    if not html:
        return ""

    region = html
    article = next(_iter_blocks(html, _ARTICLE_BLOCK), None)
    if article is not None:
        _, inner_start, inner_end, _ = article
        region = html[inner_start:inner_end]

    examined = 0
    for _, inner_start, inner_end, _ in _iter_blocks(region, _PARAGRAPH_BLOCK):
        inner = strip_tags(region[inner_start:inner_end])
        if len(inner.strip()) < PARAGRAPH_MIN_CHARS:
            continue
        examined += 1
        if examined > PARAGRAPH_MAX_CANDIDATES:
            break

        candidate = collapse_whitespace(decode_entities(inner))
        if len(candidate) < PARAGRAPH_MIN_CLEAN_CHARS:
            continue
        if any(marker in candidate for marker in PARAGRAPH_CODE_MARKERS):
            continue
        if len(candidate) > PARAGRAPH_MAX_CHARS:
            return f"{candidate[:PARAGRAPH_MAX_CHARS]}..."
        return candidate
    return ""
