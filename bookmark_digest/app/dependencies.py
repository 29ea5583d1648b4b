from __future__ import annotations

from functools import lru_cache

from bookmark_digest.app.config import AppSettings, load_settings
from bookmark_digest.app.services.page_analysis_service import PageAnalysisService
from bookmark_digest.app.services.summary_rewriter import build_summary_rewriter
from bookmark_digest.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_page_analysis_service() -> PageAnalysisService:
    return build_page_analysis_service(get_settings(), telemetry=get_telemetry())


def build_page_analysis_service(
    settings: AppSettings,
    *,
    telemetry: TelemetryClient | None = None,
) -> PageAnalysisService:
    return PageAnalysisService(
        telemetry=telemetry,
        fetch_timeout_seconds=settings.fetch_timeout_seconds,
        max_body_bytes=settings.max_body_bytes,
        user_agent=settings.fetch_user_agent,
        keyword_options=settings.keyword_options,
        summary_rewriter=build_summary_rewriter(
            enabled=settings.summary_rewrite_enabled,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            timeout_seconds=settings.openai_timeout_seconds,
        ),
    )


def reset_cached_dependencies() -> None:
    get_page_analysis_service.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
