"""
Scoring Helper Functions and Constants

Category caps, score-category thresholds and clamping utilities
used across all scoring calculations.
"""

import math
from datetime import datetime
from typing import Dict, Optional
from enum import Enum


# ============================================================================
# CATEGORY CAPS
# ============================================================================

class ScoreDimension(Enum):
    """The six scored categories."""
    SPEED = "speed"
    MOBILE = "mobile"
    SECURITY = "security"
    SEO = "seo"
    GEO = "geo"
    DESIGN = "design"


CATEGORY_CAPS: Dict[ScoreDimension, int] = {
    ScoreDimension.SPEED: 20,
    ScoreDimension.MOBILE: 15,
    ScoreDimension.SECURITY: 10,
    ScoreDimension.SEO: 20,
    ScoreDimension.GEO: 15,
    ScoreDimension.DESIGN: 20,
}

MAX_TOTAL_SCORE = sum(CATEGORY_CAPS.values())  # 100

# Below these values a category is reported as a weak area
WEAK_AREA_THRESHOLDS: Dict[ScoreDimension, int] = {
    ScoreDimension.SPEED: 10,
    ScoreDimension.MOBILE: 8,
    ScoreDimension.SECURITY: 5,
    ScoreDimension.SEO: 10,
    ScoreDimension.GEO: 8,
    ScoreDimension.DESIGN: 10,
}

WEAK_AREA_LABELS: Dict[ScoreDimension, str] = {
    ScoreDimension.SPEED: "loading speed",
    ScoreDimension.MOBILE: "mobile optimization",
    ScoreDimension.SECURITY: "security",
    ScoreDimension.SEO: "SEO",
    ScoreDimension.GEO: "AI search optimization",
    ScoreDimension.DESIGN: "design and UX",
}


def clamp_score(value: float, cap: int) -> int:
    """
    Clamp a raw category value into [0, cap].

    Args:
        value: Raw points collected by a category scorer
        cap: Category maximum

    Returns:
        Integer score, never negative, never above cap
    """
    if value is None or value != value:  # NaN guard
        return 0
    return int(max(0, min(cap, value)))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (3.5 -> 4)."""
    return int(math.floor(value + 0.5))


def resolve_reference_year(reference_year: Optional[int] = None) -> int:
    """Year used by the freshness rules, current UTC year by default."""
    return reference_year if reference_year is not None else datetime.utcnow().year


# ============================================================================
# SCORE CATEGORY
# ============================================================================

class ScoreCategory(Enum):
    """Overall label derived from the total score."""
    CRITICAL = "critical"     # 0-30
    POOR = "poor"             # 31-50
    AVERAGE = "average"       # 51-70
    GOOD = "good"             # 71-85
    EXCELLENT = "excellent"   # 86-100


def get_score_category(total: int) -> ScoreCategory:
    """
    Classify a total score into its label.

    Args:
        total: Total score (0-100)

    Returns:
        ScoreCategory enum
    """
    if total <= 30:
        return ScoreCategory.CRITICAL
    elif total <= 50:
        return ScoreCategory.POOR
    elif total <= 70:
        return ScoreCategory.AVERAGE
    elif total <= 85:
        return ScoreCategory.GOOD
    else:
        return ScoreCategory.EXCELLENT


SCORE_DESCRIPTIONS: Dict[ScoreCategory, str] = {
    ScoreCategory.CRITICAL: (
        "The website has serious technical problems that actively drive potential "
        "customers away. Every day without a fix means lost business."
    ),
    ScoreCategory.POOR: (
        "The website works but lags well behind competitors. Visitors expect speed, "
        "a proper mobile layout and a professional look."
    ),
    ScoreCategory.AVERAGE: (
        "A solid base. A few targeted improvements would give a clear competitive "
        "advantage and higher conversions."
    ),
    ScoreCategory.GOOD: (
        "An above-average website with minor gaps. Small optimizations can move it "
        "to the top of its market."
    ),
    ScoreCategory.EXCELLENT: (
        "The website is among the best in its market. Advanced features such as "
        "online booking or richer analytics can support further growth."
    ),
}
