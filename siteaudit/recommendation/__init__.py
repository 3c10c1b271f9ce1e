"""
Recommendation Engine

Ordered business-rule chain mapping an analysis to a package tier,
plus the package catalog.
"""

from .engine import (
    ENTERPRISE_OPERATOR_THRESHOLD,
    RULE_CHAIN,
    TRIAGE_PRIORITY,
    Recommendation,
    RecommendationContext,
    RecommendationRule,
    RuleChainConfigurationError,
    TriagePriority,
    build_recommendation,
    match_rule,
    validate_rule_chain,
)
from .packages import (
    PACKAGES,
    Package,
    calculate_roi_estimate,
    get_package,
    get_upgrade_benefits,
)

__all__ = [
    "ENTERPRISE_OPERATOR_THRESHOLD",
    "RULE_CHAIN",
    "TRIAGE_PRIORITY",
    "Recommendation",
    "RecommendationContext",
    "RecommendationRule",
    "RuleChainConfigurationError",
    "TriagePriority",
    "build_recommendation",
    "match_rule",
    "validate_rule_chain",
    "PACKAGES",
    "Package",
    "calculate_roi_estimate",
    "get_package",
    "get_upgrade_benefits",
]
