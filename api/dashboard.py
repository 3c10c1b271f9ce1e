"""
Dashboard API

Aggregated figures for the admin dashboard:
- Pending recommendations (total / critical / high / medium / low)
- Recent analyses per campaign
- Analysis and lead-generation statistics
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from siteaudit.database import get_db
from siteaudit.database import repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/summary")
def summary(
    analyses_per_campaign: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Everything the dashboard needs in one call."""
    return {
        "generated_at": datetime.utcnow().isoformat(),
        "pending_recommendations": repository.get_pending_recommendation_summary(db),
        "campaigns": repository.get_recent_analyses_by_campaign(db, analyses_per_campaign),
        "analyses": repository.get_analysis_stats(db),
        "leads": repository.get_lead_generation_stats(db),
    }
