"""
SQLAlchemy Models for the Site Audit Engine

Tables:
1. analyses          - one row per analysis run, immutable once finished
2. recommendations   - one current recommendation per analysis, superseded on re-run
3. leads             - prospect records, mutable status and email flags
4. campaigns         - outbound campaigns (counters derived on read)
5. generated_emails  - one per outbound email, unique tracking code
6. tracking_events   - append-only open/click/convert log

Column types are portable (Uuid, JSON) so the same models run on
PostgreSQL in production and SQLite in development and tests.
"""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, UniqueConstraint, JSON, Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

from ..leads.state_machine import LeadStatus
from ..models import BusinessType, PackageTier
from ..recommendation.engine import TriagePriority

Base = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class AnalysisStatus(enum.Enum):
    """Status of an analysis run"""
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class RecommendationReviewStatus(enum.Enum):
    """Admin review of a recommendation"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CampaignStatus(enum.Enum):
    """Campaign lifecycle"""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class TrackingEventType(enum.Enum):
    """Tracked outbound-email events"""
    OPEN = "open"
    CLICK = "click"
    CONVERT = "convert"


# =============================================================================
# CAMPAIGNS
# =============================================================================

class Campaign(Base):
    """Outbound campaign. Sent/opened/clicked/converted are derived, never stored."""
    __tablename__ = "campaigns"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    target_business_type = Column(Enum(BusinessType), nullable=True)

    status = Column(Enum(CampaignStatus), default=CampaignStatus.DRAFT, nullable=False)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    emails = relationship("GeneratedEmail", back_populates="campaign")
    analyses = relationship("Analysis", back_populates="campaign")

    __table_args__ = (
        Index("idx_campaign_status", "status"),
    )


# =============================================================================
# ANALYSES
# =============================================================================

class Analysis(Base):
    """Each analysis run - the central entity"""
    __tablename__ = "analyses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    url = Column(String(2048), nullable=False)
    domain = Column(String(255), nullable=False)
    business_type = Column(Enum(BusinessType), nullable=False)
    operator_count = Column(Integer)

    # Contact submitted with the request
    contact_name = Column(String(255))
    contact_email = Column(String(255))
    company_name = Column(String(255))

    campaign_id = Column(Uuid, ForeignKey("campaigns.id"), nullable=True)
    rerun_of_id = Column(Uuid, ForeignKey("analyses.id"), nullable=True)

    # Status tracking
    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.PENDING, nullable=False)
    error_message = Column(Text)

    # Raw input, persisted for debugging and re-scoring
    signals = Column(JSON)

    # Scores (only set when completed)
    score_speed = Column(Integer)
    score_mobile = Column(Integer)
    score_security = Column(Integer)
    score_seo = Column(Integer)
    score_geo = Column(Integer)
    score_design = Column(Integer)
    total_score = Column(Integer)
    score_category = Column(String(20))

    findings = Column(JSON, default=list)
    recommended_package = Column(Enum(PackageTier))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)

    campaign = relationship("Campaign", back_populates="analyses")
    recommendations = relationship(
        "Recommendation", back_populates="analysis", cascade="all, delete-orphan",
        order_by="Recommendation.created_at",
    )

    __table_args__ = (
        Index("idx_analysis_status", "status"),
        Index("idx_analysis_domain_time", "domain", "created_at"),
        Index("idx_analysis_campaign", "campaign_id", "created_at"),
    )

    @property
    def scores(self) -> dict:
        if self.total_score is None:
            return {}
        return {
            "speed": self.score_speed,
            "mobile": self.score_mobile,
            "security": self.score_security,
            "seo": self.score_seo,
            "geo": self.score_geo,
            "design": self.score_design,
            "total": self.total_score,
            "category": self.score_category,
        }

    @property
    def current_recommendation(self):
        for recommendation in self.recommendations:
            if recommendation.is_current:
                return recommendation
        return None


class Recommendation(Base):
    """Package recommendation. Superseded (never edited) when the analysis is re-run."""
    __tablename__ = "recommendations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    analysis_id = Column(Uuid, ForeignKey("analyses.id"), nullable=False)

    package_tier = Column(Enum(PackageTier), nullable=False)
    confidence = Column(Float, nullable=False)
    rationale = Column(Text, nullable=False)
    matched_needs = Column(JSON, default=list)
    rule_name = Column(String(50), nullable=False)
    priority = Column(Enum(TriagePriority), nullable=False)

    # Supersede chain
    is_current = Column(Boolean, default=True, nullable=False)
    superseded_at = Column(DateTime)

    # Admin review
    review_status = Column(
        Enum(RecommendationReviewStatus),
        default=RecommendationReviewStatus.PENDING,
        nullable=False,
    )
    reviewed_at = Column(DateTime)
    review_notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    analysis = relationship("Analysis", back_populates="recommendations")

    __table_args__ = (
        Index("idx_recommendation_review", "review_status", "priority"),
        Index("idx_recommendation_analysis", "analysis_id", "is_current"),
    )


# =============================================================================
# LEADS
# =============================================================================

class Lead(Base):
    """Prospect record. Never deleted; the lifecycle lives in status."""
    __tablename__ = "leads"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Contact
    contact_name = Column(String(255))
    email = Column(String(255), nullable=False, unique=True)
    company_name = Column(String(255))
    website_url = Column(String(2048))
    business_type = Column(Enum(BusinessType), nullable=False)

    # Analysis linkage
    current_analysis_id = Column(Uuid, ForeignKey("analyses.id"), nullable=True)
    analysis_score = Column(Integer)
    lead_score = Column(Integer)
    campaign_id = Column(Uuid, ForeignKey("campaigns.id"), nullable=True)

    status = Column(Enum(LeadStatus), default=LeadStatus.NEW, nullable=False)

    # Email lifecycle flags (first write wins)
    email_sent = Column(Boolean, default=False, nullable=False)
    email_sent_at = Column(DateTime)
    email_opened = Column(Boolean, default=False, nullable=False)
    email_opened_at = Column(DateTime)
    email_clicked = Column(Boolean, default=False, nullable=False)
    email_clicked_at = Column(DateTime)

    # Outcome
    converted_at = Column(DateTime)
    conversion_ref = Column(String(255))  # Downstream commercial record
    rejected_at = Column(DateTime)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    current_analysis = relationship("Analysis", foreign_keys=[current_analysis_id])
    emails = relationship("GeneratedEmail", back_populates="lead")

    __table_args__ = (
        Index("idx_lead_status", "status"),
        Index("idx_lead_campaign", "campaign_id"),
    )


# =============================================================================
# OUTBOUND EMAIL TRACKING
# =============================================================================

class GeneratedEmail(Base):
    """One outbound email. The tracking code joins it to its events."""
    __tablename__ = "generated_emails"

    id = Column(Uuid, primary_key=True, default=uuid4)
    lead_id = Column(Uuid, ForeignKey("leads.id"), nullable=False)
    campaign_id = Column(Uuid, ForeignKey("campaigns.id"), nullable=True)

    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    tracking_code = Column(String(64), nullable=False)

    sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime)
    opened = Column(Boolean, default=False, nullable=False)
    opened_at = Column(DateTime)
    clicked = Column(Boolean, default=False, nullable=False)
    clicked_at = Column(DateTime)
    converted_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lead = relationship("Lead", back_populates="emails")
    campaign = relationship("Campaign", back_populates="emails")
    events = relationship("TrackingEvent", back_populates="email")

    __table_args__ = (
        UniqueConstraint("tracking_code", name="uq_generated_email_tracking_code"),
        Index("idx_generated_email_campaign", "campaign_id"),
        Index("idx_generated_email_lead", "lead_id"),
    )


class TrackingEvent(Base):
    """Append-only event log, every occurrence is kept."""
    __tablename__ = "tracking_events"

    id = Column(Uuid, primary_key=True, default=uuid4)
    tracking_code = Column(
        String(64), ForeignKey("generated_emails.tracking_code"), nullable=False
    )
    event_type = Column(Enum(TrackingEventType), nullable=False)
    occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Request context (user agent, ip, referer)
    details = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    email = relationship("GeneratedEmail", back_populates="events")

    __table_args__ = (
        Index("idx_tracking_event_code_type", "tracking_code", "event_type"),
    )
