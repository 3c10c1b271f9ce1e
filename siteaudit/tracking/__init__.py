"""
Campaign/Tracking Manager

Tracking codes, open/click/convert events, lead transitions they drive,
and the campaign lifecycle.
"""

from .campaigns import (
    CAMPAIGN_TRANSITIONS,
    CampaignNotFound,
    InvalidCampaignTransition,
    can_transition,
    create_campaign,
    get_campaign_stats,
    set_campaign_status,
)
from .manager import (
    EmailNotFound,
    LeadNotFound,
    TrackingOutcome,
    admin_convert_lead,
    create_generated_email,
    generate_tracking_code,
    mark_email_sent,
    record_click,
    record_conversion,
    record_event,
    record_open,
    reject_lead,
)

__all__ = [
    "CAMPAIGN_TRANSITIONS",
    "CampaignNotFound",
    "InvalidCampaignTransition",
    "can_transition",
    "create_campaign",
    "get_campaign_stats",
    "set_campaign_status",
    "EmailNotFound",
    "LeadNotFound",
    "TrackingOutcome",
    "admin_convert_lead",
    "create_generated_email",
    "generate_tracking_code",
    "mark_email_sent",
    "record_click",
    "record_conversion",
    "record_event",
    "record_open",
    "reject_lead",
]
