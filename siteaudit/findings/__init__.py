"""
Finding Generator

Rule-based detection of prioritized issues (critical/warning/opportunity)
from a signal bundle.
"""

from .rules import FINDING_RULES, FindingContext, FindingRule, FindingSeverity
from .generator import (
    Finding,
    count_findings,
    generate_findings,
    get_findings_by_severity,
    get_top_findings,
)

__all__ = [
    "FINDING_RULES",
    "FindingContext",
    "FindingRule",
    "FindingSeverity",
    "Finding",
    "count_findings",
    "generate_findings",
    "get_findings_by_severity",
    "get_top_findings",
]
