from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from http.client import HTTPException
from time import perf_counter
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from bookmark_digest.app.services.content_analysis import (
    DEFAULT_KEYWORD_OPTIONS,
    ContentAnalysis,
    KeywordOptions,
    compose_summary,
    contains_code_marker,
    extract_keywords,
    resolve_metadata,
)
from bookmark_digest.app.services.html_text import extract_text
from bookmark_digest.app.services.summary_rewriter import (
    SummaryRewriter,
    UnavailableSummaryRewriter,
)
from bookmark_digest.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("bookmark_digest.page_analysis")

DEFAULT_FETCH_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_BODY_BYTES = 500_000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
_READ_CHUNK_BYTES = 64 * 1024


class FetchFailure(Exception):
    """The page could not be fetched (DNS, connect, TLS, timeout, bad URL)."""

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class _Readable(Protocol):
    def read(self, amt: int, /) -> bytes:
        ...


@dataclass(frozen=True)
class FetchedPage:
    url: str
    body: bytes
    charset: str | None
    http_status: int | None
    truncated: bool


class PageAnalysisService:
    def __init__(
        self,
        *,
        telemetry: TelemetryClient | None = None,
        fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        keyword_options: KeywordOptions = DEFAULT_KEYWORD_OPTIONS,
        summary_rewriter: SummaryRewriter | None = None,
    ) -> None:
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._fetch_timeout_seconds = max(1.0, fetch_timeout_seconds)
        self._max_body_bytes = max(1, max_body_bytes)
        self._user_agent = user_agent.strip() or DEFAULT_USER_AGENT
        self._keyword_options = keyword_options
        self._summary_rewriter = (
            summary_rewriter if summary_rewriter is not None else UnavailableSummaryRewriter()
        )

    @property
    def max_body_bytes(self) -> int:
        return self._max_body_bytes

    def analyze(self, url: str) -> ContentAnalysis:
        """
        Fetch `url` once and derive its summary and keywords.

        Raises `FetchFailure` when the transport fails. Everything after the
        fetch is total: a truncated, malformed or binary body still produces
        a result.
        """

        started_at = perf_counter()
        self._telemetry.emit("page.analyze.start", url=url)
        try:
            page = self._fetch_page(url)
        except FetchFailure as exc:
            self._telemetry.emit(
                "page.analyze.error",
                url=url,
                duration_ms=int((perf_counter() - started_at) * 1000),
                error_type=type(exc.__cause__).__name__,
            )
            raise

        analysis = self.analyze_html(decode_body(page.body, page.charset), url)
        LOGGER.info(
            "page analyzed url=%s http_status=%s bytes=%s truncated=%s keywords=%s",
            url,
            page.http_status,
            len(page.body),
            page.truncated,
            len(analysis.keywords),
        )
        self._telemetry.emit(
            "page.analyze.finish",
            url=url,
            duration_ms=int((perf_counter() - started_at) * 1000),
            http_status=page.http_status,
            response_bytes=len(page.body),
            truncated=page.truncated,
            keyword_count=len(analysis.keywords),
        )
        return analysis

    def analyze_html(self, html: str, url: str) -> ContentAnalysis:
        summary = compose_summary(html, url)
        text = extract_text(html)
        keywords = extract_keywords(text, self._keyword_options)

        if self._summary_rewriter.available:
            rewritten = self._summary_rewriter.rewrite(
                url=url,
                metadata=resolve_metadata(html),
                page_text=text,
            )
            if rewritten and not contains_code_marker(rewritten):
                summary = rewritten
            else:
                LOGGER.debug("summary rewrite unusable; keeping heuristic summary url=%s", url)

        return ContentAnalysis(summary=summary, keywords=tuple(keywords))

    def _fetch_page(self, url: str) -> FetchedPage:
        try:
            request = Request(
                url,
                headers={
                    "Accept": "text/html,application/xhtml+xml",
                    "User-Agent": self._user_agent,
                },
                method="GET",
            )
        except ValueError as exc:
            raise FetchFailure(str(exc), url=url) from exc

        try:
            with urlopen(request, timeout=self._fetch_timeout_seconds) as response:
                body, truncated = self._read_capped(response)
                return FetchedPage(
                    url=url,
                    body=body,
                    charset=response.headers.get_content_charset(),
                    http_status=getattr(response, "status", None),
                    truncated=truncated,
                )
        except HTTPError as exc:
            # Error pages are still pages; their markup is analyzed like any other.
            LOGGER.info("page fetch returned error status url=%s http_status=%s", url, exc.code)
            body, truncated = b"", False
            if exc.fp is not None:
                try:
                    body, truncated = self._read_capped(exc)
                except (OSError, HTTPException) as read_exc:
                    raise FetchFailure(str(read_exc), url=url) from read_exc
            return FetchedPage(
                url=url,
                body=body,
                charset=exc.headers.get_content_charset() if exc.headers is not None else None,
                http_status=int(exc.code),
                truncated=truncated,
            )
        except (URLError, TimeoutError, OSError, HTTPException, ValueError) as exc:
            LOGGER.warning(
                "page fetch failed url=%s error=%s message=%s",
                url,
                type(exc).__name__,
                exc,
            )
            raise FetchFailure(str(exc), url=url) from exc

    def _read_capped(self, response: _Readable) -> tuple[bytes, bool]:
        chunks: list[bytes] = []
        remaining = self._max_body_bytes
        while remaining > 0:
            chunk = response.read(min(remaining, _READ_CHUNK_BYTES))
            if not chunk:
                return b"".join(chunks), False
            chunks.append(chunk)
            remaining -= len(chunk)
        # A body of exactly the cap is only truncated if more bytes follow.
        truncated = bool(response.read(1))
        return b"".join(chunks), truncated


def decode_body(body: bytes, charset: str | None) -> str:
    """Decode a response body, treating binary payloads as empty text."""

    if not body or b"\x00" in body:
        return ""
    encoding = "utf-8"
    if charset:
        try:
            encoding = codecs.lookup(charset).name
        except LookupError:
            encoding = "utf-8"
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        # Known codec that is not a text encoding (for example base64).
        return body.decode("utf-8", errors="replace")


def analyze(url: str) -> ContentAnalysis:
    return PageAnalysisService().analyze(url)
