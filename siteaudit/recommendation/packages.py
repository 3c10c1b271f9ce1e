"""
Package Catalog

The three commercial package tiers with pricing, delivery time and
feature lists, plus upgrade and ROI helpers used by the outbound-email
composer.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Any, List, Tuple

from ..models import PackageTier


INCLUDES_PREFIX = "Everything in"


@dataclass(frozen=True)
class Package:
    """One commercial package."""
    tier: PackageTier
    name: str
    price_min: int
    price_max: int
    delivery_time: str
    features: Tuple[str, ...]
    not_included: Tuple[str, ...] = field(default_factory=tuple)
    ideal_for: str = ""
    headline_needs: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def average_price(self) -> float:
        return (self.price_min + self.price_max) / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "name": self.name,
            "price_min": self.price_min,
            "price_max": self.price_max,
            "delivery_time": self.delivery_time,
            "features": list(self.features),
            "not_included": list(self.not_included),
            "ideal_for": self.ideal_for,
        }


PACKAGES: Dict[PackageTier, Package] = {
    PackageTier.BASIC: Package(
        tier=PackageTier.BASIC,
        name="BASIC",
        price_min=19990,
        price_max=24990,
        delivery_time="5-7 business days",
        features=(
            "Modern responsive custom design",
            "5-7 pages (home, about, services, gallery, contact)",
            "Load time under 2 seconds",
            "HTTPS",
            "PageSpeed 90+",
            "WhatsApp button",
            "Contact form",
            "Gallery with up to 30 photos",
            "Basic SEO (meta tags, structure)",
            "Mobile optimization",
        ),
        not_included=(
            "Online booking system",
            "Staff profiles with filters",
            "Advanced SEO/GEO optimization",
            "Blog section",
            "Multiple languages",
            "Content admin panel",
        ),
        ideal_for="Smaller studios, new businesses, simple presentations",
        headline_needs=("fast modern website", "mobile optimization", "basic SEO"),
    ),
    PackageTier.PREMIUM: Package(
        tier=PackageTier.PREMIUM,
        name="PREMIUM",
        price_min=49990,
        price_max=59990,
        delivery_time="2-4 weeks",
        features=(
            "Everything in BASIC +",
            "10-15 pages",
            "Online booking system with calendar",
            "Unlimited staff profiles",
            "Profile filters (services, languages, availability)",
            "Admin panel for bookings and content",
            "Complete SEO optimization",
            "GEO optimization for AI search engines",
            "Two language versions",
            "FAQ section optimized for AI",
            "Blog section",
            "Google Analytics 4 setup",
            "Google Calendar sync",
            "30 days of priority support",
        ),
        not_included=(
            "Staff mobile app",
            "Internal booking system",
            "Staff management",
            "Financial reports",
        ),
        ideal_for="Larger salons, multi-operator businesses, agencies",
        headline_needs=("online booking", "staff profiles", "GEO optimization"),
    ),
    PackageTier.ENTERPRISE: Package(
        tier=PackageTier.ENTERPRISE,
        name="ENTERPRISE",
        price_min=119990,
        price_max=149990,
        delivery_time="2-3 months",
        features=(
            "Everything in PREMIUM +",
            "Staff mobile app (iOS + Android)",
            "Individual staff logins",
            "Personal shift and booking calendar",
            "Push notifications for new bookings",
            "Self-managed availability",
            "Earnings and commission overview",
            "Chat with reception",
            "Internal booking system",
            "Central calendar for all staff",
            "Staff management (profiles, history, attendance)",
            "Financial reports (revenue, commissions)",
            "CRM client database",
            "VIP clients with priority booking",
            "Accounting data export",
            "60 days of priority support + SLA",
        ),
        ideal_for="Large agencies, salon chains, businesses with many operators",
        headline_needs=("staff mobile app", "central scheduling", "staff management"),
    ),
}


def get_package(tier: PackageTier) -> Package:
    return PACKAGES[tier]


def get_upgrade_benefits(current: PackageTier, target: PackageTier) -> List[str]:
    """
    Features of the target package that the current one lacks.

    Args:
        current: Package the customer has (or is offered)
        target: Package to upgrade to

    Returns:
        Feature list in target order, without the "Everything in ..." line
    """
    current_features = set(PACKAGES[current].features)
    return [
        feature for feature in PACKAGES[target].features
        if feature not in current_features and not feature.startswith(INCLUDES_PREFIX)
    ]


_PAYBACK_MONTHS: Dict[PackageTier, str] = {
    PackageTier.BASIC: "1-2",
    PackageTier.PREMIUM: "2-3",
    PackageTier.ENTERPRISE: "3-4",
}


def calculate_roi_estimate(tier: PackageTier, average_transaction: float = 2500) -> Dict[str, Any]:
    """
    Rough payback estimate for a package.

    Args:
        tier: Package tier
        average_transaction: Average revenue per customer

    Returns:
        Dict with investment range, customers needed to break even and payback months
    """
    if average_transaction <= 0:
        raise ValueError("average_transaction must be positive")

    package = PACKAGES[tier]
    return {
        "investment_min": package.price_min,
        "investment_max": package.price_max,
        "customers_needed": math.ceil(package.average_price / average_transaction),
        "estimated_payback_months": _PAYBACK_MONTHS[tier],
    }
