"""Content risk analysis endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.errors import InvalidRequestError
from ..core.pipeline_orchestrator import PipelineOrchestrator
from ..dependencies import get_pipeline
from ..models import AnalysisRequest, AnalysisResult

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_content(
    request: AnalysisRequest,
    pipeline: PipelineOrchestrator = Depends(get_pipeline),
):
    """
    Score a video's transcript, metadata and optional video asset for policy risk.

    Stage failures degrade to conservative defaults, so this only fails
    when the request has nothing to analyze.

    Returns:
        422: No transcript, metadata or video asset supplied
        200: Full AnalysisResult
    """
    try:
        return await pipeline.analyze(request)
    except InvalidRequestError as e:
        logger.info(f"Rejected analysis request: {e}")
        raise HTTPException(status_code=422, detail=str(e))
