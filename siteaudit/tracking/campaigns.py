"""
Campaign Lifecycle

draft -> active -> paused <-> active -> completed

Counters (sent/opened/clicked/converted) are never stored on the campaign;
they are derived from generated emails and tracking events on read.
"""

import logging
from datetime import datetime
from typing import Dict, Any, FrozenSet, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..database import repository
from ..database.models import Campaign, CampaignStatus
from ..models import BusinessType

logger = logging.getLogger(__name__)


class CampaignNotFound(Exception):
    """No campaign with the given id."""
    pass


class InvalidCampaignTransition(Exception):
    """Requested campaign status is not reachable from the current one."""

    def __init__(self, current: CampaignStatus, requested: CampaignStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move campaign from {current.value} to {requested.value}")


CAMPAIGN_TRANSITIONS: Dict[CampaignStatus, FrozenSet[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.ACTIVE}),
    CampaignStatus.ACTIVE: frozenset({CampaignStatus.PAUSED, CampaignStatus.COMPLETED}),
    CampaignStatus.PAUSED: frozenset({CampaignStatus.ACTIVE, CampaignStatus.COMPLETED}),
    CampaignStatus.COMPLETED: frozenset(),
}


def can_transition(current: CampaignStatus, requested: CampaignStatus) -> bool:
    return requested in CAMPAIGN_TRANSITIONS[current]


def create_campaign(
    db: Session,
    name: str,
    description: Optional[str] = None,
    target_business_type: Optional[BusinessType] = None,
) -> Campaign:
    """Create a campaign in draft status."""
    return repository.create_campaign(db, name, description, target_business_type)


def get_campaign_or_raise(db: Session, campaign_id: UUID) -> Campaign:
    campaign = repository.get_campaign(db, campaign_id)
    if campaign is None:
        raise CampaignNotFound(f"Campaign {campaign_id} not found")
    return campaign


def set_campaign_status(db: Session, campaign_id: UUID, requested: CampaignStatus) -> Campaign:
    """
    Move a campaign along its lifecycle.

    Setting the current status again is a no-op.

    Raises:
        CampaignNotFound: Unknown campaign
        InvalidCampaignTransition: Requested status not reachable
    """
    campaign = get_campaign_or_raise(db, campaign_id)
    current = campaign.status

    if current == requested:
        return campaign
    if not can_transition(current, requested):
        raise InvalidCampaignTransition(current, requested)

    campaign.status = requested
    if requested == CampaignStatus.ACTIVE and campaign.started_at is None:
        campaign.started_at = datetime.utcnow()
    if requested == CampaignStatus.COMPLETED:
        campaign.completed_at = datetime.utcnow()
    db.flush()

    logger.info(f"Campaign {campaign_id}: {current.value} -> {requested.value}")
    return campaign


def get_campaign_stats(db: Session, campaign_id: UUID) -> Dict[str, Any]:
    """
    Derived counters and rates of one campaign.

    Rates are whole percentages of sent emails.

    Raises:
        CampaignNotFound: Unknown campaign
    """
    campaign = get_campaign_or_raise(db, campaign_id)
    counters = repository.get_campaign_counters(db, campaign_id)
    sent = counters["sent"]

    def rate(value: int) -> int:
        return round(value / sent * 100) if sent else 0

    return {
        "campaign_id": str(campaign.id),
        "name": campaign.name,
        "status": campaign.status.value,
        **counters,
        "open_rate": rate(counters["opened"]),
        "click_rate": rate(counters["clicked"]),
        "conversion_rate": rate(counters["converted"]),
    }
