"""
mCODE Classification Service: FastAPI shell

Thin HTTP wrapper around the classification engine:
1. Accepts FHIR Bundles of mCODE resources (POST /classify, POST /extract)
2. Runs one ClassificationEngine per request
3. Returns the label record consumed by the trial-search query builder
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List

from fastapi import FastAPI, HTTPException

from .config import get_settings
from .engine import ClassificationEngine
from .extractor import ResourceExtractor
from .logging_config import setup_logging
from .profiles import ProfileRepository, ProfileTableError, get_profile_repository
from .schemas import (
    BundlePayload, ClassificationLabels, ExtractionResponse, HealthResponse, ProfileSummary
)

settings = get_settings()
logger = setup_logging(settings)

SERVICE_VERSION = "1.0.0"


def _repository() -> ProfileRepository:
    try:
        return get_profile_repository(settings.profile_table_path)
    except ProfileTableError as e:
        logger.error(f"[API] Profile table unavailable: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def _check_bundle(payload: BundlePayload):
    if payload.resourceType != "Bundle":
        raise HTTPException(
            status_code=400,
            detail=f"Expected resourceType 'Bundle', got '{payload.resourceType}'"
        )


# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("=" * 60)
    logger.info("  MCODE CLASSIFICATION SERVICE STARTING")
    logger.info("=" * 60)
    try:
        repository = get_profile_repository(settings.profile_table_path)
        logger.info(f"Profile table: {len(repository)} profiles")
    except ProfileTableError as e:
        logger.error(f"Profile table failed to load: {e}")
    logger.info(f"Active status codes:     {', '.join(settings.active_status_codes)}")
    logger.info(f"Recurrence status codes: {', '.join(settings.recurrence_status_codes)}")
    logger.info(f"Strict ratio comparators: {settings.strict_ratio_comparators}")
    logger.info("REST Endpoints:")
    logger.info("  Health Check: GET  /health")
    logger.info("  Profiles:     GET  /profiles")
    logger.info("  Extract:      POST /extract")
    logger.info("  Classify:     POST /classify")
    logger.info("=" * 60)
    yield
    logger.info("  MCODE CLASSIFICATION SERVICE SHUTTING DOWN")


app = FastAPI(
    title="mCODE Classification Service",
    description="Clinical feature classification of mCODE breast cancer records",
    version=SERVICE_VERSION,
    lifespan=lifespan
)


@app.get("/health", response_model=HealthResponse)
async def health():
    """Simple health check endpoint."""
    repository = _repository()
    return HealthResponse(
        status="healthy",
        profiles_loaded=len(repository),
        timestamp=datetime.now().isoformat(),
    )


@app.get("/profiles", response_model=List[ProfileSummary])
async def list_profiles():
    """Profile names with member code counts per code system."""
    summary = _repository().summary()
    return [ProfileSummary(name=name, systems=systems) for name, systems in summary.items()]


@app.post("/extract", response_model=ExtractionResponse)
async def extract(payload: BundlePayload):
    """Return the Extracted Clinical Record for a bundle, without classifying it."""
    _check_bundle(payload)
    extractor = ResourceExtractor()
    record = extractor.extract(payload.model_dump())
    return ExtractionResponse(record=record.to_dict(), warnings=extractor.warnings, stats=extractor.stats)


@app.post("/classify", response_model=ClassificationLabels)
async def classify(payload: BundlePayload):
    """Classify a bundle across every dimension."""
    _check_bundle(payload)
    engine = ClassificationEngine.from_bundle(
        payload.model_dump(), repository=_repository(), settings=settings
    )
    labels = engine.classify()
    logger.info(
        f"[API] Classified bundle {payload.id or '?'}: {len(payload.entry)} entries, "
        f"primary={labels.primary_cancer}, tumor_marker={labels.tumor_marker}"
    )
    if engine.extraction_warnings:
        logger.warning(f"[API] {len(engine.extraction_warnings)} extraction warnings for bundle {payload.id or '?'}")
    return labels
