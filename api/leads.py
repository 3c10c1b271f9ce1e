"""
API Endpoints for Lead Management

Handles:
1. List leads (filter by status / campaign)
2. Get single lead with its emails
3. Manual convert / reject
4. Lead-generation statistics
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteaudit.database import Lead, get_db
from siteaudit.database import repository
from siteaudit.leads import LeadStatus
from siteaudit.tracking import LeadNotFound, admin_convert_lead, reject_lead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["Leads"])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class LeadResponse(BaseModel):
    """Single lead response."""
    id: str
    email: str
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    website_url: Optional[str] = None
    business_type: str
    status: str
    analysis_score: Optional[int] = None
    lead_score: Optional[int] = None
    current_analysis_id: Optional[str] = None
    campaign_id: Optional[str] = None
    email_sent: bool
    email_sent_at: Optional[datetime] = None
    email_opened: bool
    email_opened_at: Optional[datetime] = None
    email_clicked: bool
    email_clicked_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    conversion_ref: Optional[str] = None
    rejected_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadDetailResponse(LeadResponse):
    """Lead with its generated emails."""
    emails: List[dict] = []


class ConvertLeadRequest(BaseModel):
    """Manual conversion."""
    conversion_ref: Optional[str] = Field(
        default=None, max_length=255,
        description="Reference to the downstream commercial record (quote, invoice)",
    )


class RejectLeadRequest(BaseModel):
    """Manual rejection."""
    reason: Optional[str] = Field(default=None, max_length=2000)


class LeadActionResponse(BaseModel):
    """Result of a manual lead action."""
    lead_id: str
    changed: bool
    status: str


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _str_or_none(value) -> Optional[str]:
    return str(value) if value else None


def lead_to_response(lead: Lead) -> LeadResponse:
    """Convert Lead model to response."""
    return LeadResponse(
        id=str(lead.id),
        email=lead.email,
        contact_name=lead.contact_name,
        company_name=lead.company_name,
        website_url=lead.website_url,
        business_type=lead.business_type.value,
        status=lead.status.value,
        analysis_score=lead.analysis_score,
        lead_score=lead.lead_score,
        current_analysis_id=_str_or_none(lead.current_analysis_id),
        campaign_id=_str_or_none(lead.campaign_id),
        email_sent=lead.email_sent,
        email_sent_at=lead.email_sent_at,
        email_opened=lead.email_opened,
        email_opened_at=lead.email_opened_at,
        email_clicked=lead.email_clicked,
        email_clicked_at=lead.email_clicked_at,
        converted_at=lead.converted_at,
        conversion_ref=lead.conversion_ref,
        rejected_at=lead.rejected_at,
        notes=lead.notes,
        created_at=lead.created_at,
    )


def _action_response(db: Session, lead_id: UUID, new_status: Optional[LeadStatus]) -> LeadActionResponse:
    db.commit()
    lead = repository.get_lead(db, lead_id)
    db.refresh(lead)
    return LeadActionResponse(lead_id=str(lead_id), changed=new_status is not None, status=lead.status.value)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=List[LeadResponse])
def list_leads(
    status: Optional[LeadStatus] = None,
    campaign_id: Optional[UUID] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """List leads, newest first."""
    return [lead_to_response(lead) for lead in repository.list_leads(db, status, campaign_id, limit)]


@router.get("/stats")
def lead_stats(db: Session = Depends(get_db)):
    """Lead-generation statistics."""
    return repository.get_lead_generation_stats(db)


@router.get("/{lead_id}", response_model=LeadDetailResponse)
def get_lead(lead_id: UUID, db: Session = Depends(get_db)):
    """Get a lead with its generated emails."""
    lead = repository.get_lead(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    return LeadDetailResponse(
        **lead_to_response(lead).model_dump(),
        emails=[
            {
                "id": str(email.id),
                "subject": email.subject,
                "tracking_code": email.tracking_code,
                "sent": email.sent,
                "opened_at": email.opened_at,
                "clicked_at": email.clicked_at,
                "created_at": email.created_at,
            }
            for email in lead.emails
        ],
    )


@router.post("/{lead_id}/convert", response_model=LeadActionResponse)
def convert_lead(lead_id: UUID, request: ConvertLeadRequest, db: Session = Depends(get_db)):
    """
    Mark a lead converted by hand.

    Already converted or rejected leads are left unchanged (changed=false).
    """
    try:
        new_status = admin_convert_lead(db, lead_id, request.conversion_ref)
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")
    return _action_response(db, lead_id, new_status)


@router.post("/{lead_id}/reject", response_model=LeadActionResponse)
def reject(lead_id: UUID, request: RejectLeadRequest, db: Session = Depends(get_db)):
    """Mark a lead rejected. The record is kept."""
    try:
        new_status = reject_lead(db, lead_id, request.reason)
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")
    return _action_response(db, lead_id, new_status)
