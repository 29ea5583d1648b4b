from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol
from urllib.parse import urlsplit, urlunsplit

import structlog

TELEMETRY_LOGGER_NAME = "bookmark_digest.telemetry"
TELEMETRY_LOG_FILE_NAME = "bookmark-digest-telemetry.log"

_SENSITIVE_ATTRIBUTE_TOKENS: frozenset[str] = frozenset(
    {
        "api_key",
        "authorization",
        "body",
        "content",
        "cookie",
        "html",
        "payload",
        "secret",
        "summary",
        "text",
        "token",
    }
)
_MAX_STRING_LENGTH = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)
        return


class StructuredLogTelemetrySink:
    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info(
            "telemetry",
            telemetry_event=event_name,
            **dict(attributes),
        )


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(
            event_name=event_name,
            attributes=_sanitize_attributes(attributes),
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger(TELEMETRY_LOGGER_NAME).warning(
        "unsupported telemetry sink requested; disabling telemetry sink=%s",
        sink,
    )
    return TelemetryClient.disabled()


def route_telemetry_to_file(log_dir: Path, formatter: logging.Formatter) -> Path:
    """Write telemetry events to their own file, outside the application log."""

    log_file = log_dir / TELEMETRY_LOG_FILE_NAME
    telemetry_logger = logging.getLogger(TELEMETRY_LOGGER_NAME)
    for stale_handler in list(telemetry_logger.handlers):
        telemetry_logger.removeHandler(stale_handler)
        stale_handler.close()

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(formatter)
    telemetry_logger.addHandler(handler)
    telemetry_logger.setLevel(logging.INFO)
    # A child of the application logger; propagating would duplicate events there.
    telemetry_logger.propagate = False
    return log_file


def _sanitize_attributes(
    attributes: Mapping[str, Any],
) -> dict[str, bool | int | float | str | None]:
    sanitized: dict[str, bool | int | float | str | None] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if _is_sensitive_attribute(key):
            sanitized[key] = "[redacted]"
            continue
        if key == "url" or key.endswith("_url"):
            raw_value = _strip_url_query(raw_value)
        sanitized[key] = _sanitize_value(raw_value)
    return sanitized


def _is_sensitive_attribute(key: str) -> bool:
    return any(token in key for token in _SENSITIVE_ATTRIBUTE_TOKENS)


def _strip_url_query(value: Any) -> Any:
    # Query strings and fragments on bookmarked URLs often carry session tokens.
    if not isinstance(value, str):
        return value
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return "[invalid-url]"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _sanitize_value(value: Any) -> bool | int | float | str | None:
    if value is None:
        return None
    if isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) <= _MAX_STRING_LENGTH:
            return compact
        return f"{compact[:_MAX_STRING_LENGTH]}..."
    return str(type(value).__name__)
