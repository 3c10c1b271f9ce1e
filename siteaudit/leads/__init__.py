"""
Lead lifecycle: status enum and the transition table.
"""

from .state_machine import (
    ACTIONS,
    TERMINAL_STATUSES,
    LeadAction,
    LeadStatus,
    Transition,
    is_terminal,
    next_status,
    reachable_from,
    sources_for,
)

__all__ = [
    "ACTIONS",
    "TERMINAL_STATUSES",
    "LeadAction",
    "LeadStatus",
    "Transition",
    "is_terminal",
    "next_status",
    "reachable_from",
    "sources_for",
]
