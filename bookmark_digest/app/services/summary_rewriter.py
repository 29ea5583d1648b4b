from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from bookmark_digest.app.services.content_analysis import PageMetadata

LOGGER = logging.getLogger("bookmark_digest.summary_rewriter")

PAGE_EXCERPT_MAX_CHARS = 4000
REWRITE_MAX_TOKENS = 150
RESPONSE_MAX_BYTES = 64 * 1024

_PROMPT_TEMPLATE = """Summarize this webpage in 1-2 concise sentences. \
Focus on what it is and why someone would bookmark it.

URL: {url}
Title: {title}
Description: {description}
Page content excerpt: {excerpt}

Summary:"""


class SummaryRewriter(Protocol):
    @property
    def available(self) -> bool:
        ...

    def rewrite(self, *, url: str, metadata: PageMetadata, page_text: str) -> str | None:
        ...


class UnavailableSummaryRewriter:
    @property
    def available(self) -> bool:
        return False

    def rewrite(self, *, url: str, metadata: PageMetadata, page_text: str) -> str | None:
        _ = (url, metadata, page_text)
        return None


class OpenAISummaryRewriter:
    """Rewrites summaries through an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = max(1.0, timeout_seconds)

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def rewrite(self, *, url: str, metadata: PageMetadata, page_text: str) -> str | None:
        if not self.available:
            return None

        prompt = _PROMPT_TEMPLATE.format(
            url=url,
            title=metadata.title,
            description=metadata.description,
            excerpt=page_text[:PAGE_EXCERPT_MAX_CHARS],
        )
        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": REWRITE_MAX_TOKENS,
        }
        response = self._post_json(path="/chat/completions", payload=payload)
        if response is None:
            return None
        return _extract_completion_text(response)

    def _post_json(self, *, path: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            request = Request(
                f"{self._base_url}{path}",
                data=json.dumps(payload, ensure_ascii=True).encode("utf-8"),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                method="POST",
            )
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw = response.read(RESPONSE_MAX_BYTES).decode("utf-8", errors="replace")
        except HTTPError as exc:
            LOGGER.warning("summary rewrite rejected http_status=%s", exc.code)
            return None
        except (URLError, TimeoutError, OSError, HTTPException, ValueError) as exc:
            LOGGER.warning("summary rewrite request failed error=%s", type(exc).__name__)
            return None

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("summary rewrite returned invalid json")
            return None
        if not isinstance(parsed, dict):
            return None
        return cast(dict[str, Any], parsed)


def build_summary_rewriter(
    *,
    enabled: bool,
    api_key: str | None,
    base_url: str,
    model: str,
    timeout_seconds: float,
) -> SummaryRewriter:
    if not enabled:
        return UnavailableSummaryRewriter()
    if api_key is None:
        LOGGER.warning("summary rewrite enabled without an api key; using heuristic summaries")
        return UnavailableSummaryRewriter()
    return OpenAISummaryRewriter(
        api_key=api_key,
        base_url=base_url,
        model=model,
        timeout_seconds=timeout_seconds,
    )


def _extract_completion_text(payload: dict[str, Any]) -> str | None:
    error = payload.get("error")
    if isinstance(error, dict):
        LOGGER.warning(
            "summary rewrite api error message=%s",
            cast(dict[str, Any], error).get("message"),
        )
        return None

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = cast(list[Any], choices)[0]
    if not isinstance(first, dict):
        return None
    message = cast(dict[str, Any], first).get("message")
    if not isinstance(message, dict):
        return None
    content = cast(dict[str, Any], message).get("content")
    if not isinstance(content, str):
        return None
    normalized = " ".join(content.split())
    return normalized or None
