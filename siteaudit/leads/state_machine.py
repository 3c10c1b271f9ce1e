"""
Lead State Machine

The authoritative set of legal lead status transitions. Transitions are
named actions with explicit source sets; an action applied to a status
outside its sources is a no-op, which makes replayed and out-of-order
tracking events harmless.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set

logger = logging.getLogger(__name__)


class LeadStatus(Enum):
    """Lead lifecycle status."""
    NEW = "new"
    CONTACTED = "contacted"
    INTERESTED = "interested"
    CONVERTED = "converted"
    REJECTED = "rejected"


TERMINAL_STATUSES: FrozenSet[LeadStatus] = frozenset({LeadStatus.CONVERTED, LeadStatus.REJECTED})


class LeadAction(Enum):
    """Actions that move a lead between statuses."""
    EMAIL_SENT = "email_sent"
    LINK_CLICKED = "link_clicked"
    TRACKED_CONVERSION = "tracked_conversion"
    ADMIN_CONVERT = "admin_convert"
    REJECT = "reject"


@dataclass(frozen=True)
class Transition:
    """Legal source statuses and the target of one action."""
    sources: FrozenSet[LeadStatus]
    target: LeadStatus
    event_driven: bool = True


ACTIONS: Dict[LeadAction, Transition] = {
    LeadAction.EMAIL_SENT: Transition(
        sources=frozenset({LeadStatus.NEW}),
        target=LeadStatus.CONTACTED,
    ),
    LeadAction.LINK_CLICKED: Transition(
        sources=frozenset({LeadStatus.NEW, LeadStatus.CONTACTED}),
        target=LeadStatus.INTERESTED,
    ),
    LeadAction.TRACKED_CONVERSION: Transition(
        sources=frozenset({LeadStatus.CONTACTED, LeadStatus.INTERESTED}),
        target=LeadStatus.CONVERTED,
    ),
    # Manual admin override, allowed before any contact
    LeadAction.ADMIN_CONVERT: Transition(
        sources=frozenset({LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.INTERESTED}),
        target=LeadStatus.CONVERTED,
        event_driven=False,
    ),
    LeadAction.REJECT: Transition(
        sources=frozenset({LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.INTERESTED}),
        target=LeadStatus.REJECTED,
    ),
}


def next_status(current: LeadStatus, action: LeadAction) -> Optional[LeadStatus]:
    """
    Target status of an action, or None when the action is not legal from
    the current status. Never raises on illegal transitions.

    Args:
        current: Stored lead status
        action: Requested action

    Returns:
        New status, or None for a no-op
    """
    transition = ACTIONS[action]
    if current not in transition.sources:
        logger.debug(f"Dropped lead transition {action.value} from {current.value}")
        return None
    return transition.target


def sources_for(action: LeadAction) -> FrozenSet[LeadStatus]:
    return ACTIONS[action].sources


def reachable_from(status: LeadStatus, include_admin: bool = False) -> Set[LeadStatus]:
    """Statuses reachable in one step (event-driven actions unless include_admin)."""
    return {
        transition.target
        for transition in ACTIONS.values()
        if status in transition.sources and (include_admin or transition.event_driven)
    }


def is_terminal(status: LeadStatus) -> bool:
    return status in TERMINAL_STATUSES
