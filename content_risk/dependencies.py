"""Service wiring for FastAPI routes.

Everything is built once by ``build_services`` at startup and stored on
``app.state.services``; routes receive it through dependencies. There are
no module-level singletons, so tests can install their own container.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from google.cloud import firestore

from .config import settings
from .core.gemini_client import ModelProvider, build_providers
from .core.output_extractor import StructuredOutputExtractor
from .core.pipeline_orchestrator import PipelineOrchestrator
from .core.retry_controller import RetryController
from .core.schema_validator import SchemaValidator
from .core.usage_governor import UsageGovernor, UsageRecorder

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Components shared by every request."""

    governor: UsageGovernor
    recorder: UsageRecorder
    retry: RetryController
    extractor: StructuredOutputExtractor
    pipeline: PipelineOrchestrator


def build_services(
    firestore_client: Optional[firestore.Client] = None,
    providers: Optional[list[ModelProvider]] = None,
) -> Services:
    """
    Construct the pipeline and its collaborators.

    Args:
        firestore_client: Backing store for quota counters (None = memory only)
        providers: Model providers in fallback order (default: Gemini from settings)
    """
    governor = UsageGovernor(firestore_client)
    recorder = UsageRecorder()
    retry = RetryController(providers or build_providers(), governor=governor, recorder=recorder)
    extractor = StructuredOutputExtractor(SchemaValidator())
    pipeline = PipelineOrchestrator(retry, extractor=extractor)

    logger.info(f"Services built: providers={[p.name for p in retry.providers]}")
    return Services(governor=governor, recorder=recorder, retry=retry, extractor=extractor, pipeline=pipeline)


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return services


def get_pipeline(services: Services = Depends(get_services)) -> PipelineOrchestrator:
    return services.pipeline


def create_firestore_client() -> firestore.Client:
    return firestore.Client(
        project=settings.gcp_project_id or None,
        database=settings.firestore_database_id,
    )
