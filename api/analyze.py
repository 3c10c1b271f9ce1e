"""
Site Audit API

FastAPI application that:
1. Runs website analyses (signals -> scores -> findings -> recommendation)
2. Exposes leads, recommendations and campaigns to the admin UI
3. Serves the public tracking endpoints for outbound emails
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import Body, Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from siteaudit import __version__
from siteaudit.analyzer import (
    AnalysisNotFound,
    DailyLimitExceeded,
    InvalidAnalysisInput,
    parse_analysis_request,
    rerun_analysis,
    run_analysis,
)
from siteaudit.collector import create_signal_provider
from siteaudit.database import AnalysisStatus, check_db_connection, get_db, init_db
from siteaudit.database import repository
from siteaudit.models import BusinessType
from siteaudit.tracking import CampaignNotFound
from siteaudit.utils.config import get_settings

from api.campaigns import router as campaigns_router
from api.dashboard import router as dashboard_router
from api.leads import router as leads_router
from api.recommendations import router as recommendations_router
from api.tracking import router as tracking_router

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,  # Override any existing config
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Create FastAPI app
app = FastAPI(
    title="Site Audit Engine",
    description="Website-audit scoring and lead qualification",
    version=__version__,
)

app.include_router(leads_router)
app.include_router(recommendations_router)
app.include_router(campaigns_router)
app.include_router(dashboard_router)
app.include_router(tracking_router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    init_db()
    if check_db_connection():
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection check failed - continuing anyway")


# ============================================================================
# DEPENDENCIES
# ============================================================================

async def get_signal_provider():
    """Signal provider for one request, closed afterwards."""
    provider = create_signal_provider()
    try:
        yield provider
    finally:
        await provider.close()


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class AnalysisSummary(BaseModel):
    """Analysis list entry."""
    id: str
    url: str
    domain: str
    business_type: str
    status: str
    total_score: Optional[int] = None
    score_category: Optional[str] = None
    recommended_package: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: Optional[datetime] = None


class AnalysisDetail(AnalysisSummary):
    """Full analysis with findings and the current recommendation."""
    scores: Dict[str, Any] = {}
    findings: List[Dict[str, Any]] = []
    recommendation: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    rerun_of_id: Optional[str] = None
    completed_at: Optional[datetime] = None


def analysis_to_summary(analysis) -> AnalysisSummary:
    return AnalysisSummary(
        id=str(analysis.id),
        url=analysis.url,
        domain=analysis.domain,
        business_type=analysis.business_type.value,
        status=analysis.status.value,
        total_score=analysis.total_score,
        score_category=analysis.score_category,
        recommended_package=analysis.recommended_package.value if analysis.recommended_package else None,
        contact_email=analysis.contact_email,
        created_at=analysis.created_at,
    )


def analysis_to_detail(analysis) -> AnalysisDetail:
    recommendation = analysis.current_recommendation
    return AnalysisDetail(
        **analysis_to_summary(analysis).model_dump(),
        scores=analysis.scores,
        findings=analysis.findings or [],
        recommendation={
            "id": str(recommendation.id),
            "tier": recommendation.package_tier.value,
            "confidence": recommendation.confidence,
            "rationale": recommendation.rationale,
            "matched_needs": recommendation.matched_needs or [],
            "priority": recommendation.priority.value,
            "review_status": recommendation.review_status.value,
        } if recommendation else None,
        error_message=analysis.error_message,
        rerun_of_id=str(analysis.rerun_of_id) if analysis.rerun_of_id else None,
        completed_at=analysis.completed_at,
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Site Audit Engine"}


@app.get("/health")
def health():
    """Detailed health check including database status."""
    db_connected = check_db_connection()
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "database": "connected" if db_connected else "disconnected",
    }


@app.post("/api/analyses")
async def create_analysis(
    payload: Dict[str, Any] = Body(...),
    provider=Depends(get_signal_provider),
):
    """
    Run an analysis for one website.

    The response carries status "completed" with scores, top findings and
    the recommendation, or status "failed" with the error.
    """
    try:
        request = parse_analysis_request(payload)
    except InvalidAnalysisInput as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": _jsonable(e.errors)})

    try:
        result = await run_analysis(request, provider)
    except DailyLimitExceeded as e:
        raise HTTPException(status_code=429, detail=str(e))
    except CampaignNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return result.to_dict()


@app.get("/api/analyses", response_model=List[AnalysisSummary])
def list_analyses(
    status: Optional[AnalysisStatus] = None,
    business_type: Optional[BusinessType] = None,
    campaign_id: Optional[UUID] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List analyses, newest first."""
    analyses = repository.list_analyses(
        db, status=status, business_type=business_type, campaign_id=campaign_id,
        search=search, limit=limit, offset=offset,
    )
    return [analysis_to_summary(a) for a in analyses]


@app.get("/api/analyses/stats")
def analysis_stats(db: Session = Depends(get_db)):
    """Counts by status, business type and package."""
    return repository.get_analysis_stats(db)


@app.get("/api/analyses/{analysis_id}", response_model=AnalysisDetail)
def get_analysis(analysis_id: UUID, db: Session = Depends(get_db)):
    """Get one analysis with all findings."""
    analysis = repository.get_analysis(db, analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis_to_detail(analysis)


@app.post("/api/analyses/{analysis_id}/rerun")
async def rerun(analysis_id: UUID, provider=Depends(get_signal_provider)):
    """Re-run an analysis. The earlier run is kept unchanged."""
    try:
        result = await rerun_analysis(analysis_id, provider)
    except AnalysisNotFound:
        raise HTTPException(status_code=404, detail="Analysis not found")
    except DailyLimitExceeded as e:
        raise HTTPException(status_code=429, detail=str(e))
    return result.to_dict()


def _jsonable(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # pydantic error dicts can carry exception objects under "ctx"
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.analyze:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
