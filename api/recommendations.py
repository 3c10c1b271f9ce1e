"""
API Endpoints for Recommendation Review

Admins approve or reject package recommendations before an offer goes out.
Only the review fields change; the recommendation itself is immutable.
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteaudit.database import Recommendation, RecommendationReviewStatus, get_db, transaction
from siteaudit.database import repository
from siteaudit.recommendation import TriagePriority

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["Recommendations"])


_ACTIONS = {
    "approve": RecommendationReviewStatus.APPROVED,
    "reject": RecommendationReviewStatus.REJECTED,
}


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class RecommendationResponse(BaseModel):
    id: str
    analysis_id: str
    tier: str
    confidence: float
    rationale: str
    matched_needs: List[str] = []
    rule_name: str
    priority: str
    review_status: str
    is_current: bool
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ReviewRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class BulkReviewRequest(BaseModel):
    ids: List[UUID] = Field(..., min_length=1, max_length=500)
    action: Literal["approve", "reject"]
    notes: Optional[str] = Field(default=None, max_length=2000)


class BulkReviewResponse(BaseModel):
    updated: List[str]
    not_found: List[str]


def recommendation_to_response(row: Recommendation) -> RecommendationResponse:
    return RecommendationResponse(
        id=str(row.id),
        analysis_id=str(row.analysis_id),
        tier=row.package_tier.value,
        confidence=row.confidence,
        rationale=row.rationale,
        matched_needs=row.matched_needs or [],
        rule_name=row.rule_name,
        priority=row.priority.value,
        review_status=row.review_status.value,
        is_current=row.is_current,
        reviewed_at=row.reviewed_at,
        review_notes=row.review_notes,
        created_at=row.created_at,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=List[RecommendationResponse])
def list_recommendations(
    review_status: Optional[RecommendationReviewStatus] = RecommendationReviewStatus.PENDING,
    priority: Optional[TriagePriority] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Current recommendations, pending review by default."""
    rows = repository.list_recommendations(db, review_status=review_status, priority=priority, limit=limit)
    return [recommendation_to_response(row) for row in rows]


def _review(db: Session, recommendation_id: UUID, action: str, notes: Optional[str]):
    row = repository.review_recommendation(db, recommendation_id, _ACTIONS[action], notes)
    if not row:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    db.commit()
    logger.info(f"Recommendation {recommendation_id} {action}d")
    return recommendation_to_response(row)


@router.post("/bulk", response_model=BulkReviewResponse)
def bulk_review(request: BulkReviewRequest, db: Session = Depends(get_db)):
    """Approve or reject many recommendations at once."""
    updated, not_found = [], []
    with transaction(db):
        for recommendation_id in request.ids:
            row = repository.review_recommendation(db, recommendation_id, _ACTIONS[request.action], request.notes)
            (updated if row else not_found).append(str(recommendation_id))
    logger.info(f"Bulk {request.action}: {len(updated)} updated, {len(not_found)} not found")
    return BulkReviewResponse(updated=updated, not_found=not_found)


@router.post("/{recommendation_id}/approve", response_model=RecommendationResponse)
def approve(recommendation_id: UUID, request: Optional[ReviewRequest] = None, db: Session = Depends(get_db)):
    return _review(db, recommendation_id, "approve", request.notes if request else None)


@router.post("/{recommendation_id}/reject", response_model=RecommendationResponse)
def reject(recommendation_id: UUID, request: Optional[ReviewRequest] = None, db: Session = Depends(get_db)):
    return _review(db, recommendation_id, "reject", request.notes if request else None)
