"""
Database module for the Site Audit Engine.

Provides SQLAlchemy models, session management, and repository functions.
"""

from .models import (
    Base,
    Analysis,
    AnalysisStatus,
    Campaign,
    CampaignStatus,
    GeneratedEmail,
    Lead,
    Recommendation,
    RecommendationReviewStatus,
    TrackingEvent,
    TrackingEventType,
)
from .session import (
    check_db_connection,
    configure_engine,
    get_db,
    get_db_context,
    get_engine,
    init_db,
    reset_engine,
    transaction,
)

__all__ = [
    "Base",
    "Analysis",
    "AnalysisStatus",
    "Campaign",
    "CampaignStatus",
    "GeneratedEmail",
    "Lead",
    "Recommendation",
    "RecommendationReviewStatus",
    "TrackingEvent",
    "TrackingEventType",
    "check_db_connection",
    "configure_engine",
    "get_db",
    "get_db_context",
    "get_engine",
    "init_db",
    "reset_engine",
    "transaction",
]
