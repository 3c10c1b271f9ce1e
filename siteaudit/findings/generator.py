"""
Finding Generator

Evaluates the finding rule table against one signal bundle and returns the
resulting findings, highest priority first.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Iterable, List, Optional

from ..models import BusinessType
from ..scoring.helpers import resolve_reference_year
from ..scoring.signals import SignalBundle
from .rules import FINDING_RULES, FindingContext, FindingRule, FindingSeverity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Finding:
    """One prioritized issue derived from signals."""
    id: str
    severity: FindingSeverity
    category: str
    title: str
    description: str
    impact: str
    priority: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Finding":
        return cls(
            id=data["id"],
            severity=FindingSeverity(data["severity"]),
            category=data["category"],
            title=data["title"],
            description=data["description"],
            impact=data["impact"],
            priority=int(data["priority"]),
        )


def _emit(rule: FindingRule, bundle: SignalBundle, context: FindingContext) -> Finding:
    return Finding(
        id=rule.id,
        severity=rule.severity,
        category=rule.category.value,
        title=rule.render(rule.title, bundle, context),
        description=rule.render(rule.description, bundle, context),
        impact=rule.render(rule.impact, bundle, context),
        priority=rule.priority,
    )


def generate_findings(
    bundle: SignalBundle,
    business_type: BusinessType,
    reference_year: Optional[int] = None,
    rules: Iterable[FindingRule] = FINDING_RULES,
) -> List[Finding]:
    """
    Evaluate every rule and collect the findings that fire.

    Args:
        bundle: Signal bundle of the analysis run
        business_type: Business type, used in some impact texts
        reference_year: Year for the freshness rules (defaults to current UTC year)
        rules: Rule table, in declaration order

    Returns:
        Findings sorted by priority descending. Python's sort is stable, so
        equal priorities keep declaration order.
    """
    context = FindingContext(
        business_type=business_type,
        reference_year=resolve_reference_year(reference_year),
    )

    findings = [_emit(rule, bundle, context) for rule in rules if rule.predicate(bundle, context)]
    findings.sort(key=lambda f: f.priority, reverse=True)

    logger.debug(f"Generated {len(findings)} findings for {business_type.value}")
    return findings


def count_findings(findings: List[Finding]) -> Dict[str, int]:
    """Count findings per severity."""
    counts = {severity.value: 0 for severity in FindingSeverity}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


def get_findings_by_severity(findings: List[Finding], severity: FindingSeverity) -> List[Finding]:
    return [f for f in findings if f.severity == severity]


def get_top_findings(findings: List[Finding], limit: int = 5) -> List[Finding]:
    """First `limit` findings, order preserved."""
    return findings[:limit]
