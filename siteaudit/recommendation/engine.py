"""
Recommendation Engine

Maps total score, business type and a few selected signals to a package
tier. The decision is an ordered chain of business rules, evaluated top to
bottom, first match wins. Operation size and business type take precedence
over the score.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Any, Optional, Sequence, Tuple

from ..models import BusinessType, PackageTier
from ..scoring.categories import CategoryScores
from ..scoring.helpers import SCORE_DESCRIPTIONS, ScoreCategory
from .packages import get_package

logger = logging.getLogger(__name__)


ENTERPRISE_OPERATOR_THRESHOLD = 10


class RuleChainConfigurationError(Exception):
    """The rule chain is not terminated by a catch-all default rule."""
    pass


@dataclass(frozen=True)
class RecommendationContext:
    """Inputs of the rule chain."""
    total_score: int
    business_type: BusinessType
    has_booking_system: bool
    operator_count: Optional[int] = None


@dataclass(frozen=True)
class RecommendationRule:
    """One link of the rule chain."""
    name: str
    predicate: Callable[[RecommendationContext], bool]
    tier: PackageTier
    confidence: float
    rationale: str
    is_default: bool = False


RULE_CHAIN: Tuple[RecommendationRule, ...] = (
    RecommendationRule(
        name="large_operation",
        predicate=lambda c: (c.operator_count or 0) >= ENTERPRISE_OPERATOR_THRESHOLD,
        tier=PackageTier.ENTERPRISE,
        confidence=0.9,
        rationale=(
            f"With {ENTERPRISE_OPERATOR_THRESHOLD} or more operators the business needs "
            "a system that scales: staff app, central scheduling and staff management."
        ),
    ),
    RecommendationRule(
        name="agency_with_booking",
        predicate=lambda c: c.business_type == BusinessType.AGENCY and c.has_booking_system,
        tier=PackageTier.ENTERPRISE,
        confidence=0.85,
        rationale=(
            "The agency already takes online bookings; the next step is internal "
            "scheduling and a staff app."
        ),
    ),
    RecommendationRule(
        name="agency",
        predicate=lambda c: c.business_type == BusinessType.AGENCY,
        tier=PackageTier.PREMIUM,
        confidence=0.8,
        rationale="Agencies need staff profiles and online booking at minimum.",
    ),
    RecommendationRule(
        name="multi_operator",
        predicate=lambda c: c.business_type == BusinessType.MULTI_OPERATOR,
        tier=PackageTier.PREMIUM,
        confidence=0.75,
        rationale="Several operators under one roof benefit from profiles and a booking calendar.",
    ),
    RecommendationRule(
        name="booking_upgrade",
        predicate=lambda c: c.total_score >= 40 and c.has_booking_system,
        tier=PackageTier.PREMIUM,
        confidence=0.7,
        rationale=(
            "The website is in reasonable shape and already takes bookings; a complete "
            "solution keeps that and adds SEO and GEO optimization."
        ),
    ),
    RecommendationRule(
        name="single_operator_low_score",
        predicate=lambda c: c.business_type == BusinessType.SINGLE_OPERATOR and c.total_score < 50,
        tier=PackageTier.BASIC,
        confidence=0.8,
        rationale="A fast, modern website fixes the biggest problems at the lowest cost.",
    ),
    RecommendationRule(
        name="default",
        predicate=lambda c: True,
        tier=PackageTier.PREMIUM,
        confidence=0.5,
        rationale="A complete solution with online booking suits most businesses.",
        is_default=True,
    ),
)


def validate_rule_chain(rules: Sequence[RecommendationRule]) -> None:
    """
    Check that the chain ends with exactly one catch-all default rule.

    Raises:
        RuleChainConfigurationError: empty chain, missing or misplaced default
    """
    if not rules:
        raise RuleChainConfigurationError("Rule chain is empty")

    defaults = [rule.name for rule in rules if rule.is_default]
    if not rules[-1].is_default:
        raise RuleChainConfigurationError(
            f"Last rule '{rules[-1].name}' is not a catch-all default"
        )
    if len(defaults) > 1:
        raise RuleChainConfigurationError(f"Multiple default rules: {defaults}")

    names = [rule.name for rule in rules]
    if len(set(names)) != len(names):
        raise RuleChainConfigurationError(f"Duplicate rule names in chain: {names}")


# Checked at import time
validate_rule_chain(RULE_CHAIN)


def match_rule(
    context: RecommendationContext,
    rules: Sequence[RecommendationRule] = RULE_CHAIN,
) -> RecommendationRule:
    """Return the first rule whose predicate holds."""
    for rule in rules:
        if rule.predicate(context):
            return rule
    # Unreachable with a validated chain
    raise RuleChainConfigurationError("No rule matched and no default rule present")


# =============================================================================
# RECOMMENDATION
# =============================================================================

class TriagePriority(Enum):
    """Admin triage priority of a recommendation."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


TRIAGE_PRIORITY: Dict[ScoreCategory, TriagePriority] = {
    ScoreCategory.CRITICAL: TriagePriority.CRITICAL,
    ScoreCategory.POOR: TriagePriority.HIGH,
    ScoreCategory.AVERAGE: TriagePriority.MEDIUM,
    ScoreCategory.GOOD: TriagePriority.LOW,
    ScoreCategory.EXCELLENT: TriagePriority.LOW,
}


@dataclass(frozen=True)
class Recommendation:
    """Immutable recommendation of one analysis run."""
    tier: PackageTier
    confidence: float
    rationale: str
    matched_needs: Tuple[str, ...]
    rule_name: str
    score_category: ScoreCategory

    @property
    def triage_priority(self) -> TriagePriority:
        return TRIAGE_PRIORITY[self.score_category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "matched_needs": list(self.matched_needs),
            "rule_name": self.rule_name,
            "score_category": self.score_category.value,
            "triage_priority": self.triage_priority.value,
        }


def build_recommendation(
    scores: CategoryScores,
    business_type: BusinessType,
    has_booking_system: bool,
    operator_count: Optional[int] = None,
    rules: Sequence[RecommendationRule] = RULE_CHAIN,
) -> Recommendation:
    """
    Run the rule chain and assemble the recommendation.

    Args:
        scores: Clamped category scores of the analysis
        business_type: Business type of the prospect
        has_booking_system: Whether the site already takes online bookings
        operator_count: Estimated number of operators, if known
        rules: Rule chain (validated)

    Returns:
        Recommendation with tier, confidence, rationale and matched needs
    """
    context = RecommendationContext(
        total_score=scores.total,
        business_type=business_type,
        has_booking_system=bool(has_booking_system),
        operator_count=operator_count,
    )
    rule = match_rule(context, rules)

    category = scores.category
    weak_areas = scores.weak_areas()

    parts = [SCORE_DESCRIPTIONS[category], rule.rationale]
    if weak_areas:
        parts.append(f"Main areas to improve: {', '.join(weak_areas)}.")

    needs = list(weak_areas)
    for need in get_package(rule.tier).headline_needs:
        if need not in needs:
            needs.append(need)

    logger.debug(
        f"Recommendation rule '{rule.name}' -> {rule.tier.value} "
        f"(total={scores.total}, type={business_type.value})"
    )

    return Recommendation(
        tier=rule.tier,
        confidence=rule.confidence,
        rationale="\n\n".join(parts),
        matched_needs=tuple(needs),
        rule_name=rule.name,
        score_category=category,
    )
