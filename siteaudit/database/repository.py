"""
Repository Layer - Clean Interface for Data Operations

Query and mutation functions over an open Session. Callers own the
transaction (get_db_context() in the pipeline, get_db() in routers).

State changes that can race (lead transitions, first-open/first-click
timestamps) are single conditional UPDATE statements, never read-then-write.
"""

import logging
from datetime import datetime
from typing import List, Dict, Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update, distinct
from sqlalchemy.orm import Session

from ..leads.state_machine import ACTIONS, LeadAction, LeadStatus
from ..models import BusinessType, PackageTier
from ..recommendation.engine import Recommendation as RecommendationResult, TriagePriority
from .models import (
    Analysis, AnalysisStatus, Campaign, CampaignStatus, GeneratedEmail, Lead,
    Recommendation, RecommendationReviewStatus, TrackingEvent, TrackingEventType,
)

logger = logging.getLogger(__name__)


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


# =============================================================================
# ANALYSES
# =============================================================================

def create_analysis(
    db: Session,
    url: str,
    domain: str,
    business_type: BusinessType,
    contact_name: Optional[str] = None,
    contact_email: Optional[str] = None,
    company_name: Optional[str] = None,
    campaign_id: Optional[UUID] = None,
    operator_count: Optional[int] = None,
    rerun_of_id: Optional[UUID] = None,
) -> Analysis:
    """Insert a pending analysis row."""
    analysis = Analysis(
        url=url,
        domain=domain,
        business_type=business_type,
        contact_name=contact_name,
        contact_email=contact_email,
        company_name=company_name,
        campaign_id=campaign_id,
        operator_count=operator_count,
        rerun_of_id=rerun_of_id,
        status=AnalysisStatus.PENDING,
    )
    db.add(analysis)
    db.flush()
    logger.info(f"Created analysis {analysis.id} for {domain}")
    return analysis


def get_analysis(db: Session, analysis_id: UUID) -> Optional[Analysis]:
    return db.get(Analysis, analysis_id)


def list_analyses(
    db: Session,
    status: Optional[AnalysisStatus] = None,
    business_type: Optional[BusinessType] = None,
    campaign_id: Optional[UUID] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Analysis]:
    """Analyses, newest first."""
    query = select(Analysis)
    if status:
        query = query.where(Analysis.status == status)
    if business_type:
        query = query.where(Analysis.business_type == business_type)
    if campaign_id:
        query = query.where(Analysis.campaign_id == campaign_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            Analysis.domain.ilike(pattern)
            | Analysis.url.ilike(pattern)
            | Analysis.contact_name.ilike(pattern)
        )
    query = query.order_by(Analysis.created_at.desc()).limit(limit).offset(offset)
    return list(db.scalars(query))


def count_analyses_since(db: Session, since: datetime) -> int:
    """Analyses created at or after `since` (daily limit)."""
    return db.scalar(
        select(func.count(Analysis.id)).where(Analysis.created_at >= since)
    ) or 0


def mark_analysis_analyzing(db: Session, analysis: Analysis) -> None:
    analysis.status = AnalysisStatus.ANALYZING
    analysis.started_at = datetime.utcnow()
    db.flush()


def fail_analysis(db: Session, analysis: Analysis, error_message: str) -> None:
    """Mark an analysis failed. No scores are stored."""
    analysis.status = AnalysisStatus.FAILED
    analysis.error_message = error_message
    analysis.completed_at = datetime.utcnow()
    db.flush()
    logger.error(f"Analysis {analysis.id} failed: {error_message}")


def complete_analysis(
    db: Session,
    analysis: Analysis,
    signals: Dict[str, Any],
    scores: Dict[str, Any],
    findings: List[Dict[str, Any]],
    recommended_package: PackageTier,
) -> None:
    """Store scores, findings and the recommended package on a finished run."""
    analysis.signals = signals
    analysis.score_speed = scores["speed"]
    analysis.score_mobile = scores["mobile"]
    analysis.score_security = scores["security"]
    analysis.score_seo = scores["seo"]
    analysis.score_geo = scores["geo"]
    analysis.score_design = scores["design"]
    analysis.total_score = scores["total"]
    analysis.score_category = scores["category"]
    analysis.findings = findings
    analysis.recommended_package = recommended_package
    analysis.status = AnalysisStatus.COMPLETED
    analysis.completed_at = datetime.utcnow()
    db.flush()
    logger.info(f"Completed analysis {analysis.id}: total={scores['total']} ({scores['category']})")


def get_analysis_stats(db: Session) -> Dict[str, Any]:
    """Counts by status, business type and recommended package, plus average total score."""
    by_status = {status.value: 0 for status in AnalysisStatus}
    for status, count in db.execute(
        select(Analysis.status, func.count(Analysis.id)).group_by(Analysis.status)
    ):
        by_status[status.value] = count

    by_business_type = {business_type.value: 0 for business_type in BusinessType}
    for business_type, count in db.execute(
        select(Analysis.business_type, func.count(Analysis.id)).group_by(Analysis.business_type)
    ):
        by_business_type[business_type.value] = count

    by_package = {tier.value: 0 for tier in PackageTier}
    for tier, count in db.execute(
        select(Analysis.recommended_package, func.count(Analysis.id))
        .where(Analysis.recommended_package.is_not(None))
        .group_by(Analysis.recommended_package)
    ):
        by_package[tier.value] = count

    average = db.scalar(
        select(func.avg(Analysis.total_score)).where(Analysis.status == AnalysisStatus.COMPLETED)
    )

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_business_type": by_business_type,
        "by_package": by_package,
        "average_score": round(average or 0),
    }


def get_recent_analyses_by_campaign(db: Session, limit_per_campaign: int = 5) -> List[Dict[str, Any]]:
    """Per campaign, its most recent analyses (dashboard history)."""
    history = []
    campaigns = db.scalars(select(Campaign).order_by(Campaign.created_at.desc()))
    for campaign in campaigns:
        analyses = list_analyses(db, campaign_id=campaign.id, limit=limit_per_campaign)
        history.append({
            "campaign_id": str(campaign.id),
            "campaign_name": campaign.name,
            "analyses": [
                {
                    "id": str(a.id),
                    "domain": a.domain,
                    "status": a.status.value,
                    "total_score": a.total_score,
                    "created_at": a.created_at.isoformat() if a.created_at else None,
                }
                for a in analyses
            ],
        })
    return history


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

def supersede_current_recommendations(db: Session, analysis_id: UUID) -> int:
    """Flag the analysis' current recommendation as superseded. Returns rows touched."""
    result = db.execute(
        update(Recommendation)
        .where(Recommendation.analysis_id == analysis_id, Recommendation.is_current.is_(True))
        .values(is_current=False, superseded_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def store_recommendation(
    db: Session,
    analysis_id: UUID,
    recommendation: RecommendationResult,
) -> Recommendation:
    """Supersede any current recommendation of the analysis and insert the new one."""
    superseded = supersede_current_recommendations(db, analysis_id)
    if superseded:
        logger.info(f"Superseded {superseded} recommendation(s) for analysis {analysis_id}")

    row = Recommendation(
        analysis_id=analysis_id,
        package_tier=recommendation.tier,
        confidence=recommendation.confidence,
        rationale=recommendation.rationale,
        matched_needs=list(recommendation.matched_needs),
        rule_name=recommendation.rule_name,
        priority=recommendation.triage_priority,
        is_current=True,
    )
    db.add(row)
    db.flush()
    return row


def get_recommendation(db: Session, recommendation_id: UUID) -> Optional[Recommendation]:
    return db.get(Recommendation, recommendation_id)


def list_recommendations(
    db: Session,
    review_status: Optional[RecommendationReviewStatus] = RecommendationReviewStatus.PENDING,
    priority: Optional[TriagePriority] = None,
    current_only: bool = True,
    limit: int = 100,
) -> List[Recommendation]:
    query = select(Recommendation)
    if review_status:
        query = query.where(Recommendation.review_status == review_status)
    if priority:
        query = query.where(Recommendation.priority == priority)
    if current_only:
        query = query.where(Recommendation.is_current.is_(True))
    query = query.order_by(Recommendation.created_at.desc()).limit(limit)
    return list(db.scalars(query))


def review_recommendation(
    db: Session,
    recommendation_id: UUID,
    review_status: RecommendationReviewStatus,
    notes: Optional[str] = None,
) -> Optional[Recommendation]:
    """Approve or reject a recommendation. Only the review fields change."""
    row = get_recommendation(db, recommendation_id)
    if not row:
        return None
    row.review_status = review_status
    row.reviewed_at = datetime.utcnow()
    if notes:
        row.review_notes = notes
    db.flush()
    return row


def get_pending_recommendation_summary(db: Session) -> Dict[str, int]:
    """Pending current recommendations: total and per triage priority."""
    summary = {priority.value: 0 for priority in TriagePriority}
    rows = db.execute(
        select(Recommendation.priority, func.count(Recommendation.id))
        .where(
            Recommendation.review_status == RecommendationReviewStatus.PENDING,
            Recommendation.is_current.is_(True),
        )
        .group_by(Recommendation.priority)
    )
    for priority, count in rows:
        summary[priority.value] = count
    summary["total"] = sum(summary.values())
    return summary


# =============================================================================
# LEADS
# =============================================================================

def get_lead(db: Session, lead_id: UUID) -> Optional[Lead]:
    return db.get(Lead, lead_id)


def get_lead_by_email(db: Session, email: str) -> Optional[Lead]:
    return db.scalar(select(Lead).where(Lead.email == email.strip().lower()))


def list_leads(
    db: Session,
    status: Optional[LeadStatus] = None,
    campaign_id: Optional[UUID] = None,
    limit: int = 100,
) -> List[Lead]:
    query = select(Lead)
    if status:
        query = query.where(Lead.status == status)
    if campaign_id:
        query = query.where(Lead.campaign_id == campaign_id)
    query = query.order_by(Lead.created_at.desc()).limit(limit)
    return list(db.scalars(query))


def upsert_lead_for_analysis(db: Session, analysis: Analysis, lead_score: int) -> Lead:
    """
    Create the lead for a completed analysis, or point an existing lead
    (matched by email) at it. Status is never touched here.
    """
    email = analysis.contact_email.strip().lower()
    lead = get_lead_by_email(db, email)

    if lead is None:
        lead = Lead(
            email=email,
            contact_name=analysis.contact_name,
            company_name=analysis.company_name,
            website_url=analysis.url,
            business_type=analysis.business_type,
            campaign_id=analysis.campaign_id,
            status=LeadStatus.NEW,
        )
        db.add(lead)
        logger.info(f"Created lead for {email}")
    else:
        lead.contact_name = analysis.contact_name or lead.contact_name
        lead.company_name = analysis.company_name or lead.company_name
        lead.website_url = analysis.url
        lead.business_type = analysis.business_type
        if analysis.campaign_id:
            lead.campaign_id = analysis.campaign_id

    lead.current_analysis_id = analysis.id
    lead.analysis_score = analysis.total_score
    lead.lead_score = lead_score
    db.flush()
    return lead


def transition_lead(
    db: Session,
    lead_id: UUID,
    action: LeadAction,
    extra_values: Optional[Dict[str, Any]] = None,
) -> Optional[LeadStatus]:
    """
    Apply a lead action as one conditional UPDATE.

    The row only changes when its stored status is still a legal source of
    the action; otherwise nothing is written.

    Returns:
        The new status, or None when the transition was dropped
    """
    transition = ACTIONS[action]
    values = {"status": transition.target, "updated_at": datetime.utcnow()}
    values.update(extra_values or {})

    result = db.execute(
        update(Lead)
        .where(Lead.id == lead_id, Lead.status.in_(list(transition.sources)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.debug(f"Lead {lead_id}: {action.value} dropped (status not in sources)")
        return None

    logger.info(f"Lead {lead_id}: {action.value} -> {transition.target.value}")
    return transition.target


def set_lead_flag_if_unset(db: Session, lead_id: UUID, flag: str, timestamp: datetime) -> bool:
    """
    First-write-wins for a lead email flag (email_sent, email_opened, email_clicked).

    Returns:
        True when this call set the timestamp
    """
    timestamp_column = getattr(Lead, f"{flag}_at")
    result = db.execute(
        update(Lead)
        .where(Lead.id == lead_id, timestamp_column.is_(None))
        .values({flag: True, f"{flag}_at": timestamp})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def get_lead_generation_stats(db: Session) -> Dict[str, Any]:
    """Lead totals, average scores, status breakdown, email rates and campaign counts."""
    total_leads = db.scalar(select(func.count(Lead.id))) or 0
    analyzed = db.scalar(
        select(func.count(Lead.id)).where(Lead.current_analysis_id.is_not(None))
    ) or 0

    by_status = {status.value: 0 for status in LeadStatus}
    for status, count in db.execute(select(Lead.status, func.count(Lead.id)).group_by(Lead.status)):
        by_status[status.value] = count

    average_analysis = db.scalar(select(func.avg(Lead.analysis_score)).where(Lead.analysis_score > 0))
    average_lead = db.scalar(select(func.avg(Lead.lead_score)).where(Lead.lead_score > 0))

    sent = db.scalar(select(func.count(Lead.id)).where(Lead.email_sent.is_(True))) or 0
    opened = db.scalar(select(func.count(Lead.id)).where(Lead.email_opened.is_(True))) or 0
    clicked = db.scalar(select(func.count(Lead.id)).where(Lead.email_clicked.is_(True))) or 0
    converted = by_status[LeadStatus.CONVERTED.value]

    campaign_counts = dict(
        db.execute(select(Campaign.status, func.count(Campaign.id)).group_by(Campaign.status)).all()
    )

    return {
        "total_leads": total_leads,
        "analyzed_leads": analyzed,
        "contacted_leads": sent,
        "converted_leads": converted,
        "average_analysis_score": round(average_analysis or 0),
        "average_lead_score": round(average_lead or 0),
        "total_emails_sent": sent,
        "total_emails_opened": opened,
        "total_links_clicked": clicked,
        "email_open_rate": _percent(opened, sent),
        "link_click_rate": _percent(clicked, sent),
        "conversion_rate": _percent(converted, sent),
        "leads_by_status": by_status,
        "active_campaigns": campaign_counts.get(CampaignStatus.ACTIVE, 0),
        "completed_campaigns": campaign_counts.get(CampaignStatus.COMPLETED, 0),
    }


# =============================================================================
# CAMPAIGNS
# =============================================================================

def create_campaign(
    db: Session,
    name: str,
    description: Optional[str] = None,
    target_business_type: Optional[BusinessType] = None,
) -> Campaign:
    campaign = Campaign(
        name=name,
        description=description,
        target_business_type=target_business_type,
        status=CampaignStatus.DRAFT,
    )
    db.add(campaign)
    db.flush()
    logger.info(f"Created campaign {campaign.id} ({name})")
    return campaign


def get_campaign(db: Session, campaign_id: UUID) -> Optional[Campaign]:
    return db.get(Campaign, campaign_id)


def list_campaigns(db: Session, status: Optional[CampaignStatus] = None) -> List[Campaign]:
    query = select(Campaign)
    if status:
        query = query.where(Campaign.status == status)
    return list(db.scalars(query.order_by(Campaign.created_at.desc())))


def get_campaign_counters(db: Session, campaign_id: UUID) -> Dict[str, int]:
    """
    Sent/opened/clicked/converted derived from generated emails and events.

    Converted counts distinct tracking codes with at least one convert event.
    """
    def count_emails(*conditions) -> int:
        return db.scalar(
            select(func.count(GeneratedEmail.id))
            .where(GeneratedEmail.campaign_id == campaign_id, *conditions)
        ) or 0

    converted = db.scalar(
        select(func.count(distinct(TrackingEvent.tracking_code)))
        .join(GeneratedEmail, GeneratedEmail.tracking_code == TrackingEvent.tracking_code)
        .where(
            GeneratedEmail.campaign_id == campaign_id,
            TrackingEvent.event_type == TrackingEventType.CONVERT,
        )
    ) or 0

    total_leads = db.scalar(
        select(func.count(distinct(GeneratedEmail.lead_id)))
        .where(GeneratedEmail.campaign_id == campaign_id)
    ) or 0

    return {
        "total_leads": total_leads,
        "emails": count_emails(),
        "sent": count_emails(GeneratedEmail.sent.is_(True)),
        "opened": count_emails(GeneratedEmail.opened_at.is_not(None)),
        "clicked": count_emails(GeneratedEmail.clicked_at.is_not(None)),
        "converted": converted,
    }


# =============================================================================
# GENERATED EMAILS & TRACKING EVENTS
# =============================================================================

def get_email(db: Session, email_id: UUID) -> Optional[GeneratedEmail]:
    return db.get(GeneratedEmail, email_id)


def get_email_by_tracking_code(db: Session, tracking_code: str) -> Optional[GeneratedEmail]:
    return db.scalar(select(GeneratedEmail).where(GeneratedEmail.tracking_code == tracking_code))


def tracking_code_exists(db: Session, tracking_code: str) -> bool:
    return get_email_by_tracking_code(db, tracking_code) is not None


def set_email_timestamp_if_unset(
    db: Session,
    tracking_code: str,
    flag: Optional[str],
    timestamp_field: str,
    timestamp: datetime,
) -> bool:
    """
    First-write-wins: UPDATE generated_emails ... WHERE <timestamp_field> IS NULL.

    Args:
        flag: Boolean column set alongside the timestamp (None for converted_at)

    Returns:
        True when this call set the timestamp
    """
    values: Dict[str, Any] = {timestamp_field: timestamp}
    if flag:
        values[flag] = True
    result = db.execute(
        update(GeneratedEmail)
        .where(
            GeneratedEmail.tracking_code == tracking_code,
            getattr(GeneratedEmail, timestamp_field).is_(None),
        )
        .values(values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def append_tracking_event(
    db: Session,
    tracking_code: str,
    event_type: TrackingEventType,
    occurred_at: datetime,
    details: Optional[Dict[str, Any]] = None,
) -> TrackingEvent:
    event = TrackingEvent(
        tracking_code=tracking_code,
        event_type=event_type,
        occurred_at=occurred_at,
        details=details or {},
    )
    db.add(event)
    db.flush()
    return event


def get_tracking_events(db: Session, tracking_code: str) -> List[TrackingEvent]:
    return list(db.scalars(
        select(TrackingEvent)
        .where(TrackingEvent.tracking_code == tracking_code)
        .order_by(TrackingEvent.occurred_at)
    ))
