"""
Tracking Manager

Issues tracking codes for generated outbound emails and records
open/click/convert events against them.

Events can arrive concurrently, duplicated and out of order (email-client
prefetches, several devices). Correctness rests on the database only:
- every event is appended to tracking_events
- first-open/first-click timestamps use UPDATE ... WHERE <ts> IS NULL
- lead transitions use UPDATE ... WHERE status IN (<sources>)
No lock is held across I/O.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..database import repository
from ..database.models import GeneratedEmail, TrackingEventType
from ..leads.state_machine import LeadAction, LeadStatus
from ..utils.config import get_settings

logger = logging.getLogger(__name__)


MAX_CODE_ATTEMPTS = 5


class LeadNotFound(Exception):
    """No lead with the given id."""
    pass


class EmailNotFound(Exception):
    """No generated email with the given id."""
    pass


@dataclass(frozen=True)
class TrackingOutcome:
    """What recording one event did. HTTP callers ignore it."""
    recorded: bool
    first_occurrence: bool = False
    lead_status: Optional[LeadStatus] = None
    reason: Optional[str] = None


# =============================================================================
# TRACKING CODES & GENERATED EMAILS
# =============================================================================

def generate_tracking_code(num_bytes: Optional[int] = None) -> str:
    """Unguessable URL-safe token (capability, not an identifier)."""
    return secrets.token_urlsafe(num_bytes or get_settings().TRACKING_CODE_BYTES)


def create_generated_email(
    db: Session,
    lead_id: UUID,
    subject: str,
    body: str,
    campaign_id: Optional[UUID] = None,
) -> GeneratedEmail:
    """
    Store a generated email with a fresh tracking code.

    A code that already exists is replaced by a fresh one.

    Raises:
        LeadNotFound: Unknown lead
    """
    lead = repository.get_lead(db, lead_id)
    if lead is None:
        raise LeadNotFound(f"Lead {lead_id} not found")

    tracking_code = None
    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        candidate = generate_tracking_code()
        if not repository.tracking_code_exists(db, candidate):
            tracking_code = candidate
            break
        logger.warning(f"Tracking code collision, retrying ({attempt}/{MAX_CODE_ATTEMPTS})")

    if tracking_code is None:
        raise RuntimeError(f"Could not allocate a unique tracking code after {MAX_CODE_ATTEMPTS} attempts")

    email = GeneratedEmail(
        lead_id=lead_id,
        campaign_id=campaign_id or lead.campaign_id,
        subject=subject,
        body=body,
        tracking_code=tracking_code,
    )
    db.add(email)
    # The unique constraint still rejects a concurrent duplicate here
    db.flush()

    logger.info(f"Created generated email {email.id} for lead {lead_id}")
    return email


def mark_email_sent(db: Session, email_id: UUID, sent_at: Optional[datetime] = None) -> GeneratedEmail:
    """
    Record that the transport sent an email. Idempotent.

    Drives the lead's email_sent flag and the new -> contacted transition.

    Raises:
        EmailNotFound: Unknown email
    """
    email = repository.get_email(db, email_id)
    if email is None:
        raise EmailNotFound(f"Generated email {email_id} not found")

    sent_at = sent_at or datetime.utcnow()
    first = repository.set_email_timestamp_if_unset(db, email.tracking_code, "sent", "sent_at", sent_at)
    if first:
        repository.set_lead_flag_if_unset(db, email.lead_id, "email_sent", sent_at)
        repository.transition_lead(db, email.lead_id, LeadAction.EMAIL_SENT)

    db.refresh(email)
    return email


# =============================================================================
# EVENTS
# =============================================================================

# event type -> (email flag, email timestamp, lead flag, lead action)
_EVENT_EFFECTS = {
    TrackingEventType.OPEN: ("opened", "opened_at", "email_opened", None),
    TrackingEventType.CLICK: ("clicked", "clicked_at", "email_clicked", LeadAction.LINK_CLICKED),
    TrackingEventType.CONVERT: (None, "converted_at", None, LeadAction.TRACKED_CONVERSION),
}


def record_event(
    db: Session,
    tracking_code: str,
    event_type: TrackingEventType,
    details: Optional[Dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> TrackingOutcome:
    """
    Record one tracking event.

    Unknown codes and events dated before the email existed are logged as
    anomalies and write nothing.

    Args:
        db: Open session (caller commits)
        tracking_code: Code from the tracking URL
        event_type: open, click or convert
        details: Request context (user agent, ip, referer)
        occurred_at: Event time, defaults to now (UTC)

    Returns:
        TrackingOutcome
    """
    occurred_at = occurred_at or datetime.utcnow()

    email = repository.get_email_by_tracking_code(db, tracking_code)
    if email is None:
        logger.warning(f"Tracking anomaly: unknown code {tracking_code!r} ({event_type.value})")
        return TrackingOutcome(recorded=False, reason="unknown_code")

    if email.created_at and occurred_at < email.created_at:
        logger.warning(
            f"Tracking anomaly: {event_type.value} for {email.id} dated before the email was created"
        )
        return TrackingOutcome(recorded=False, reason="before_creation")

    repository.append_tracking_event(db, tracking_code, event_type, occurred_at, details)

    email_flag, email_timestamp, lead_flag, lead_action = _EVENT_EFFECTS[event_type]

    first = repository.set_email_timestamp_if_unset(
        db, tracking_code, email_flag, email_timestamp, occurred_at
    )
    if lead_flag:
        repository.set_lead_flag_if_unset(db, email.lead_id, lead_flag, occurred_at)

    lead_status = None
    if lead_action:
        extra = {"converted_at": occurred_at} if lead_action == LeadAction.TRACKED_CONVERSION else None
        lead_status = repository.transition_lead(db, email.lead_id, lead_action, extra)

    logger.info(
        f"Tracked {event_type.value} for email {email.id}"
        f"{' (first)' if first else ''}"
    )
    return TrackingOutcome(recorded=True, first_occurrence=first, lead_status=lead_status)


def record_open(db: Session, tracking_code: str, details: Optional[Dict[str, Any]] = None,
                occurred_at: Optional[datetime] = None) -> TrackingOutcome:
    """Opens never change lead status."""
    return record_event(db, tracking_code, TrackingEventType.OPEN, details, occurred_at)


def record_click(db: Session, tracking_code: str, details: Optional[Dict[str, Any]] = None,
                 occurred_at: Optional[datetime] = None) -> TrackingOutcome:
    return record_event(db, tracking_code, TrackingEventType.CLICK, details, occurred_at)


def record_conversion(db: Session, tracking_code: str, details: Optional[Dict[str, Any]] = None,
                      occurred_at: Optional[datetime] = None) -> TrackingOutcome:
    return record_event(db, tracking_code, TrackingEventType.CONVERT, details, occurred_at)


# =============================================================================
# MANUAL ADMIN ACTIONS
# =============================================================================

def admin_convert_lead(
    db: Session,
    lead_id: UUID,
    conversion_ref: Optional[str] = None,
) -> Optional[LeadStatus]:
    """
    Mark a lead converted by hand, storing the downstream commercial reference.

    Returns:
        New status, or None when the lead was already terminal

    Raises:
        LeadNotFound: Unknown lead
    """
    if repository.get_lead(db, lead_id) is None:
        raise LeadNotFound(f"Lead {lead_id} not found")

    return repository.transition_lead(
        db, lead_id, LeadAction.ADMIN_CONVERT,
        {"converted_at": datetime.utcnow(), "conversion_ref": conversion_ref},
    )


def reject_lead(db: Session, lead_id: UUID, reason: Optional[str] = None) -> Optional[LeadStatus]:
    """
    Mark a lead rejected, keeping the record.

    Raises:
        LeadNotFound: Unknown lead
    """
    lead = repository.get_lead(db, lead_id)
    if lead is None:
        raise LeadNotFound(f"Lead {lead_id} not found")

    extra: Dict[str, Any] = {"rejected_at": datetime.utcnow()}
    if reason:
        extra["notes"] = f"{lead.notes}\n{reason}" if lead.notes else reason
    return repository.transition_lead(db, lead_id, LeadAction.REJECT, extra)
