from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from structlog.contextvars import bound_contextvars

from bookmark_digest.app.dependencies import get_page_analysis_service
from bookmark_digest.app.models.analysis_contracts import (
    AnalyzeUrlRequest,
    ContentAnalysisResponse,
)
from bookmark_digest.app.services.page_analysis_service import (
    FetchFailure,
    PageAnalysisService,
)

router = APIRouter()


@router.post(
    "/analyze",
    response_model=ContentAnalysisResponse,
    tags=["analysis"],
    operation_id="analyze_url",
)
def analyze_url(
    request: AnalyzeUrlRequest,
    service: Annotated[PageAnalysisService, Depends(get_page_analysis_service)],
) -> ContentAnalysisResponse:
    with bound_contextvars(analyze_url=request.url):
        try:
            analysis = service.analyze(request.url)
        except FetchFailure as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ContentAnalysisResponse.from_analysis(analysis)
