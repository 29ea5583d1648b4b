from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookmark_digest.app.services.content_analysis import ContentAnalysis


class AnalyzeUrlRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = Field(max_length=2048)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        normalized = value.strip()
        if any(ord(character) < 32 for character in normalized):
            raise ValueError("url contains control characters")
        parsed = urlparse(normalized)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("url must be an absolute http/https URL")
        return normalized


class ContentAnalysisResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    summary: str
    keywords: list[str]

    @classmethod
    def from_analysis(cls, analysis: ContentAnalysis) -> ContentAnalysisResponse:
        return cls(summary=analysis.summary, keywords=list(analysis.keywords))
