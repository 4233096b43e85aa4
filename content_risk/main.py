"""FastAPI application for content risk analyzer service."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .dependencies import build_services, create_firestore_client
from .routers import analyze, health, usage
from .utils.logging_utils import log_exception_json

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Content Risk Analyzer Service",
    description="Multi-stage Gemini pipeline scoring video content for policy risk",
    version=settings.version,
)


# Global exception handler with structured JSON logging for Cloud Run
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions as structured JSON (single Cloud Run log entry)."""
    log_exception_json(
        logger,
        f"Unhandled exception on {request.method} {request.url.path}",
        exc,
        severity="ERROR",
        service=settings.service_name,
        path=str(request.url.path),
        method=request.method,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {type(exc).__name__}"}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(analyze.router, tags=["analyze"])
app.include_router(usage.router, tags=["usage"])


@app.on_event("startup")
async def startup_event():
    """Initialize service on startup."""
    logger.info(f"Starting {settings.service_name} v{settings.version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"GCP Project: {settings.gcp_project_id}")
    logger.info(f"Gemini Model: {settings.gemini_model} (fallback: {settings.gemini_fallback_model or 'none'})")
    logger.info(f"Default daily limit: {settings.default_daily_limit} calls/provider")

    try:
        firestore_client = create_firestore_client()
    except Exception as e:
        # Quotas still enforce from memory without Firestore
        log_exception_json(logger, "Firestore unavailable, usage counters are memory-only", e, severity="WARNING")
        firestore_client = None

    try:
        app.state.services = build_services(firestore_client)
        logger.info("✅ All components initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize components: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Flush pending usage writes on shutdown."""
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.governor.flush()
    logger.info(f"Shutting down {settings.service_name}")
