from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bookmark_digest.app.services.content_analysis import KeywordOptions
from bookmark_digest.app.services.page_analysis_service import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_USER_AGENT,
)

DEFAULT_DATA_DIR = ".bookmark-digest"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "summary_rewrite_enabled",
    "telemetry_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Runtime configuration, read from `BOOKMARK_DIGEST_*` environment variables
    (or a local `.env` file).
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOKMARK_DIGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs and local state.",
    )

    # Page fetching.
    fetch_timeout_seconds: float = Field(
        default=DEFAULT_FETCH_TIMEOUT_SECONDS,
        ge=1.0,
        le=300.0,
        description="Timeout for the single outbound GET made per analysis.",
    )
    max_body_bytes: int = Field(
        default=DEFAULT_MAX_BODY_BYTES,
        ge=1024,
        description="Hard cap on response body bytes read; the rest is discarded.",
    )
    fetch_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description=(
            "User agent sent when fetching pages. A desktop browser string avoids "
            "the reduced markup some sites serve to unknown clients."
        ),
    )

    # Keyword ranking.
    max_keywords: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Maximum number of keywords returned per page.",
    )
    min_keyword_frequency: int = Field(
        default=2,
        ge=1,
        description="Minimum occurrences in the page text for a token to qualify.",
    )
    keyword_min_length: int = Field(
        default=3,
        ge=1,
        description="Shortest keyword length, in characters.",
    )
    keyword_max_length: int = Field(
        default=25,
        ge=1,
        description="Longest keyword length, in characters.",
    )

    # Optional model-backed summary rewrite.
    summary_rewrite_enabled: bool = Field(
        default=False,
        description=(
            "Rewrite heuristic summaries through an OpenAI-compatible endpoint. "
            "Requires BOOKMARK_DIGEST_OPENAI_API_KEY; heuristics remain the fallback."
        ),
    )
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the summary rewrite endpoint.",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API.",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used for summary rewrites.",
    )
    openai_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Timeout for summary rewrite requests.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description="Directory for application and telemetry log files.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level. File logs always capture DEBUG.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Emit structured telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @property
    def keyword_options(self) -> KeywordOptions:
        return KeywordOptions(
            max_keywords=self.max_keywords,
            min_frequency=self.min_keyword_frequency,
            min_length=self.keyword_min_length,
            max_length=self.keyword_max_length,
        )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("BOOKMARK_DIGEST_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("BOOKMARK_DIGEST_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("openai_base_url", mode="before")
    @classmethod
    def _normalize_openai_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("BOOKMARK_DIGEST_OPENAI_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("BOOKMARK_DIGEST_OPENAI_BASE_URL must not be empty.")
        return normalized

    @field_validator("fetch_user_agent", mode="before")
    @classmethod
    def _normalize_user_agent(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("BOOKMARK_DIGEST_FETCH_USER_AGENT must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("BOOKMARK_DIGEST_FETCH_USER_AGENT must not be empty.")
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)

    @model_validator(mode="after")
    def _validate_keyword_length_range(self) -> AppSettings:
        if self.keyword_max_length < self.keyword_min_length:
            raise ValueError(
                "BOOKMARK_DIGEST_KEYWORD_MAX_LENGTH must be >= BOOKMARK_DIGEST_KEYWORD_MIN_LENGTH."
            )
        return self


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
