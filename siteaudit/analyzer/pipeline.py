"""
Analysis Pipeline

One analysis run:
1. Validate the request (before anything is written)
2. Enforce the daily analysis limit
3. Insert the analysis row (pending -> analyzing)
4. Collect signals from the provider, bounded by a timeout
5. Score -> findings -> recommendation (sequential, pure)
6. Persist results, supersede the previous recommendation on re-runs
7. Create or update the lead when a contact email was given

No database session is held while awaiting the provider, and database
steps run in a worker thread. Any error after the row is inserted marks
it failed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from ..collector.client import SignalCollectionError, SignalCollectionTimeout, SignalProvider
from ..database import repository
from ..database.models import AnalysisStatus
from ..database.session import get_db_context
from ..findings import Finding, generate_findings, get_top_findings
from ..models import BusinessType
from ..recommendation import Recommendation, build_recommendation
from ..scoring import CategoryScores, SignalBundle, calculate_all_scores
from ..tracking.campaigns import CampaignNotFound
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


TOP_FINDINGS_LIMIT = 10


class InvalidAnalysisInput(Exception):
    """Malformed URL, unknown business type or bad contact data."""
    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class DailyLimitExceeded(Exception):
    """The daily analysis quota is used up."""
    def __init__(self, limit: int):
        super().__init__(f"Daily analysis limit of {limit} reached, try again tomorrow")
        self.limit = limit


class AnalysisNotFound(Exception):
    """No analysis with the given id."""
    pass


# =============================================================================
# REQUEST
# =============================================================================

class AnalysisRequest(BaseModel):
    """Request to analyze one website."""
    url: str = Field(description="Website URL (http or https)")
    business_type: BusinessType = Field(description="single_operator, multi_operator or agency")
    contact_name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    company_name: Optional[str] = None
    campaign_id: Optional[UUID] = None
    operator_count: Optional[int] = Field(
        default=None, ge=0,
        description="Estimated number of operators, overrides the provider's estimate",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("URL must be an absolute http(s) URL with a host")
        return value

    @field_validator("business_type", mode="before")
    @classmethod
    def parse_business_type(cls, value):
        return BusinessType.parse(value)

    @field_validator("contact_email", mode="before")
    @classmethod
    def empty_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def domain(self) -> str:
        hostname = urlparse(self.url).hostname or ""
        return hostname[4:] if hostname.startswith("www.") else hostname


def parse_analysis_request(data: Dict[str, Any]) -> AnalysisRequest:
    """
    Validate raw input into an AnalysisRequest.

    Raises:
        InvalidAnalysisInput: With pydantic's error list
    """
    try:
        return AnalysisRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidAnalysisInput("Invalid analysis request", errors=e.errors()) from e


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class AnalysisResult:
    """Outcome of one run, as returned to the admin UI."""
    analysis_id: UUID
    status: AnalysisStatus
    url: str
    domain: str
    business_type: BusinessType
    scores: Optional[Dict[str, Any]] = None
    findings: List[Dict[str, Any]] = field(default_factory=list)
    findings_count: int = 0
    recommendation: Optional[Dict[str, Any]] = None
    lead_id: Optional[UUID] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis_id": str(self.analysis_id),
            "status": self.status.value,
            "url": self.url,
            "domain": self.domain,
            "business_type": self.business_type.value,
            "scores": self.scores,
            "findings": self.findings,
            "findings_count": self.findings_count,
            "recommendation": self.recommendation,
            "lead_id": str(self.lead_id) if self.lead_id else None,
            "error": self.error,
        }


def calculate_lead_score(total_score: int) -> int:
    """Worse websites make better leads: max(0, 100 - total)."""
    return max(0, 100 - total_score)


def _start_of_utc_day(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


# =============================================================================
# PERSISTENCE STEPS
# =============================================================================
# Synchronous; run_analysis calls them through asyncio.to_thread.

def _start_run(request: AnalysisRequest, settings: Settings, rerun_of_id: Optional[UUID]) -> UUID:
    """Check the quota and the campaign, insert the row as analyzing."""
    with get_db_context() as db:
        # Best effort: concurrent requests can all pass the count before
        # any of them inserts, so the limit may be overshot by a few runs.
        todays = repository.count_analyses_since(db, _start_of_utc_day())
        if todays >= settings.DAILY_ANALYSIS_LIMIT:
            logger.warning(f"Daily analysis limit reached ({todays}/{settings.DAILY_ANALYSIS_LIMIT})")
            raise DailyLimitExceeded(settings.DAILY_ANALYSIS_LIMIT)

        if request.campaign_id and repository.get_campaign(db, request.campaign_id) is None:
            raise CampaignNotFound(f"Campaign {request.campaign_id} not found")

        analysis = repository.create_analysis(
            db,
            url=request.url,
            domain=request.domain,
            business_type=request.business_type,
            contact_name=request.contact_name,
            contact_email=request.contact_email,
            company_name=request.company_name,
            campaign_id=request.campaign_id,
            operator_count=request.operator_count,
            rerun_of_id=rerun_of_id,
        )
        repository.mark_analysis_analyzing(db, analysis)
        return analysis.id


def _fail_run(analysis_id: UUID, error: str) -> None:
    with get_db_context() as db:
        repository.fail_analysis(db, repository.get_analysis(db, analysis_id), error)


def _finish_run(
    analysis_id: UUID,
    request: AnalysisRequest,
    bundle: SignalBundle,
    scores: CategoryScores,
    findings: List[Finding],
    recommendation: Recommendation,
    rerun_of_id: Optional[UUID],
) -> Optional[UUID]:
    """Store results, supersede on re-runs, upsert the lead. Returns the lead id."""
    with get_db_context() as db:
        analysis = repository.get_analysis(db, analysis_id)
        repository.complete_analysis(
            db,
            analysis,
            signals=bundle.to_dict(),
            scores=scores.to_dict(),
            findings=[f.to_dict() for f in findings],
            recommended_package=recommendation.tier,
        )
        if rerun_of_id:
            repository.supersede_current_recommendations(db, rerun_of_id)
        repository.store_recommendation(db, analysis_id, recommendation)

        if not request.contact_email:
            return None
        lead = repository.upsert_lead_for_analysis(
            db, analysis, calculate_lead_score(scores.total)
        )
        return lead.id


def _load_rerun_request(analysis_id: UUID) -> AnalysisRequest:
    with get_db_context() as db:
        previous = repository.get_analysis(db, analysis_id)
        if previous is None:
            raise AnalysisNotFound(f"Analysis {analysis_id} not found")
        return AnalysisRequest(
            url=previous.url,
            business_type=previous.business_type,
            contact_name=previous.contact_name,
            contact_email=previous.contact_email,
            company_name=previous.company_name,
            campaign_id=previous.campaign_id,
            operator_count=previous.operator_count,
        )


# =============================================================================
# PIPELINE
# =============================================================================

async def run_analysis(
    request: AnalysisRequest,
    provider: SignalProvider,
    settings: Optional[Settings] = None,
    reference_year: Optional[int] = None,
    rerun_of_id: Optional[UUID] = None,
) -> AnalysisResult:
    """
    Run one analysis end to end.

    Args:
        request: Validated request
        provider: Signal provider
        settings: Settings (defaults to the cached environment settings)
        reference_year: Year for freshness rules (defaults to current UTC year)
        rerun_of_id: Analysis this run replaces

    Returns:
        AnalysisResult with status completed or failed

    Raises:
        DailyLimitExceeded: Quota used up, nothing written
        CampaignNotFound: Unknown campaign_id, nothing written
    """
    settings = settings or get_settings()
    business_type = request.business_type

    analysis_id = await asyncio.to_thread(_start_run, request, settings, rerun_of_id)

    result = AnalysisResult(
        analysis_id=analysis_id,
        status=AnalysisStatus.ANALYZING,
        url=request.url,
        domain=request.domain,
        business_type=business_type,
    )

    # Every exit below leaves the row completed or failed
    timeout = settings.SIGNAL_TIMEOUT_SECONDS
    error = None
    try:
        bundle = await asyncio.wait_for(provider.collect(request.url, business_type), timeout=timeout)

        # Scoring -> findings -> recommendation
        scores = calculate_all_scores(bundle, reference_year)
        findings = generate_findings(bundle, business_type, reference_year)
        operator_count = (
            request.operator_count if request.operator_count is not None
            else bundle.estimated_operator_count
        )
        recommendation = build_recommendation(
            scores,
            business_type,
            has_booking_system=bundle.is_true("has_booking_system"),
            operator_count=operator_count,
        )

        result.lead_id = await asyncio.to_thread(
            _finish_run, analysis_id, request, bundle, scores, findings, recommendation, rerun_of_id
        )
    except asyncio.TimeoutError:
        error = f"Signal collection timed out after {timeout:g}s"
    except SignalCollectionTimeout as e:
        error = str(e)
    except SignalCollectionError as e:
        error = f"Signal collection failed: {e}"
    except Exception as e:
        logger.exception(f"Analysis {analysis_id} for {request.domain} failed: {e}")
        error = f"Analysis failed: {e}"

    if error:
        await asyncio.to_thread(_fail_run, analysis_id, error)
        result.status = AnalysisStatus.FAILED
        result.error = error
        result.lead_id = None
        return result

    result.status = AnalysisStatus.COMPLETED
    result.scores = scores.to_dict()
    result.findings = [f.to_dict() for f in get_top_findings(findings, TOP_FINDINGS_LIMIT)]
    result.findings_count = len(findings)
    result.recommendation = recommendation.to_dict()

    logger.info(
        f"Analysis {analysis_id} for {request.domain}: total={scores.total} "
        f"({scores.category.value}), package={recommendation.tier.value}"
    )
    return result


async def rerun_analysis(
    analysis_id: UUID,
    provider: SignalProvider,
    settings: Optional[Settings] = None,
    reference_year: Optional[int] = None,
) -> AnalysisResult:
    """
    Start a new run for the same URL, business type and contact.

    The earlier analysis stays as it is; its current recommendation is
    superseded once the new run completes.

    Raises:
        AnalysisNotFound: Unknown analysis
    """
    request = await asyncio.to_thread(_load_rerun_request, analysis_id)

    logger.info(f"Re-running analysis {analysis_id} for {request.domain}")
    return await run_analysis(
        request, provider, settings, reference_year, rerun_of_id=analysis_id
    )
