"""
API Endpoints for Campaigns and Generated Emails

Handles:
1. Create / list / get campaigns (with derived counters)
2. Campaign lifecycle changes
3. Generated email records (tracking code issued here)
4. Marking an email as sent by the transport
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteaudit.database import CampaignStatus, GeneratedEmail, get_db
from siteaudit.database import repository
from siteaudit.models import BusinessType
from siteaudit.tracking import (
    CampaignNotFound,
    EmailNotFound,
    InvalidCampaignTransition,
    LeadNotFound,
    create_campaign,
    create_generated_email,
    get_campaign_stats,
    mark_email_sent,
    set_campaign_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/campaigns", tags=["Campaigns"])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class CreateCampaignRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    target_business_type: Optional[BusinessType] = None


class CampaignStatusRequest(BaseModel):
    status: CampaignStatus


class CampaignResponse(BaseModel):
    """Campaign with derived counters."""
    campaign_id: str
    name: str
    status: str
    total_leads: int
    emails: int
    sent: int
    opened: int
    clicked: int
    converted: int
    open_rate: int
    click_rate: int
    conversion_rate: int


class CreateEmailRequest(BaseModel):
    lead_id: UUID
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)
    campaign_id: Optional[UUID] = None


class EmailResponse(BaseModel):
    id: str
    lead_id: str
    campaign_id: Optional[str] = None
    subject: str
    tracking_code: str
    sent: bool
    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


def email_to_response(email: GeneratedEmail) -> EmailResponse:
    return EmailResponse(
        id=str(email.id),
        lead_id=str(email.lead_id),
        campaign_id=str(email.campaign_id) if email.campaign_id else None,
        subject=email.subject,
        tracking_code=email.tracking_code,
        sent=email.sent,
        sent_at=email.sent_at,
        opened_at=email.opened_at,
        clicked_at=email.clicked_at,
        created_at=email.created_at,
    )


# =============================================================================
# CAMPAIGNS
# =============================================================================

@router.post("", response_model=CampaignResponse, status_code=201)
def create(request: CreateCampaignRequest, db: Session = Depends(get_db)):
    """Create a campaign in draft status."""
    campaign = create_campaign(db, request.name, request.description, request.target_business_type)
    db.commit()
    return get_campaign_stats(db, campaign.id)


@router.get("", response_model=List[CampaignResponse])
def list_campaigns(status: Optional[CampaignStatus] = None, db: Session = Depends(get_db)):
    return [get_campaign_stats(db, c.id) for c in repository.list_campaigns(db, status)]


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(campaign_id: UUID, db: Session = Depends(get_db)):
    try:
        return get_campaign_stats(db, campaign_id)
    except CampaignNotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")


@router.post("/{campaign_id}/status", response_model=CampaignResponse)
def change_status(campaign_id: UUID, request: CampaignStatusRequest, db: Session = Depends(get_db)):
    """Move a campaign along draft -> active <-> paused -> completed."""
    try:
        set_campaign_status(db, campaign_id, request.status)
    except CampaignNotFound:
        raise HTTPException(status_code=404, detail="Campaign not found")
    except InvalidCampaignTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    return get_campaign_stats(db, campaign_id)


# =============================================================================
# GENERATED EMAILS
# =============================================================================

@router.post("/emails", response_model=EmailResponse, status_code=201)
def create_email(request: CreateEmailRequest, db: Session = Depends(get_db)):
    """Store a generated email and issue its tracking code."""
    if request.campaign_id and repository.get_campaign(db, request.campaign_id) is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    try:
        email = create_generated_email(
            db, request.lead_id, request.subject, request.body, request.campaign_id
        )
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")
    db.commit()
    return email_to_response(email)


@router.post("/emails/{email_id}/sent", response_model=EmailResponse)
def email_sent(email_id: UUID, db: Session = Depends(get_db)):
    """Called once the transport has sent the email. Idempotent."""
    try:
        email = mark_email_sent(db, email_id)
    except EmailNotFound:
        raise HTTPException(status_code=404, detail="Email not found")
    db.commit()
    return email_to_response(email)
