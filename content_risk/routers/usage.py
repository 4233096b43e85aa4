"""Provider usage and quota endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import Services, get_services

router = APIRouter()


class UsageResponse(BaseModel):
    """Quota snapshot plus the record-only call count."""

    provider: str
    date: str
    available: bool
    current: int
    limit: int
    recorded_calls: int


class ExtractionStatsResponse(BaseModel):
    """How often each extraction strategy succeeded."""

    strategies: dict[str, int]


@router.get("/usage/{provider}", response_model=UsageResponse)
async def get_usage(provider: str, services: Services = Depends(get_services)):
    """Today's quota state for one provider."""
    status = await services.governor.check_quota(provider)
    return UsageResponse(
        **status.model_dump(),
        recorded_calls=services.recorder.get_count(provider),
    )


@router.get("/usage", response_model=dict[str, int])
async def get_usage_summary(services: Services = Depends(get_services)):
    """Today's recorded call counts by provider."""
    return services.recorder.get_usage_summary()


@router.get("/extraction/stats", response_model=ExtractionStatsResponse)
async def get_extraction_stats(services: Services = Depends(get_services)):
    """Success counts per structured-output strategy since startup."""
    return ExtractionStatsResponse(strategies=dict(services.extractor.strategy_stats))
