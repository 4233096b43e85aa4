"""Health check endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..config import settings
from ..dependencies import Services, get_services

router = APIRouter()


class HealthResponse(BaseModel):
    """Service status plus the pipeline wiring it is running with."""

    status: str
    service: str
    version: str
    providers: list[str]
    multimodal: bool
    usage_persistence: str  # "firestore" or "memory"


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)):
    """
    Health check for Cloud Run.

    Returns 503 until startup has built the pipeline. Usage persistence is
    "memory" when Firestore was unavailable at startup; quotas are still
    enforced, just not shared across instances.
    """
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version=settings.version,
        providers=[provider.name for provider in services.retry.providers],
        multimodal=services.retry.supports_multimodal(),
        usage_persistence="firestore" if services.governor.firestore is not None else "memory",
    )
