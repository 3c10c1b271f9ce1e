"""
Site Audit Engine - Shared Models

Shared enums used across scoring, recommendation and persistence.
"""

from enum import Enum
from typing import Dict


class BusinessType(Enum):
    """Business-type classification of an analyzed prospect."""
    SINGLE_OPERATOR = "single_operator"  # One-person studio or salon
    MULTI_OPERATOR = "multi_operator"    # Several operators under one roof
    AGENCY = "agency"                    # Agency managing many operators

    @classmethod
    def parse(cls, value) -> "BusinessType":
        """Accept an enum member or its string value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        raise ValueError(f"Unknown business type: {value!r}")


BUSINESS_TYPE_LABELS: Dict[BusinessType, str] = {
    BusinessType.SINGLE_OPERATOR: "independent studio",
    BusinessType.MULTI_OPERATOR: "multi-operator salon",
    BusinessType.AGENCY: "agency",
}


class PackageTier(Enum):
    """Commercial package tiers."""
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


__all__ = [
    "BusinessType",
    "BUSINESS_TYPE_LABELS",
    "PackageTier",
]
