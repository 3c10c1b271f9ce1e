"""
Category Score Calculator

Maps one SignalBundle to six category scores and a total (0-100):

1. Speed & Performance (max 20)
2. Mobile Optimization (max 15)
3. Security (max 10)
4. SEO (max 20)
5. GEO - Generative Engine Optimization (max 15)
6. Design & UX (max 20)

Each category sums fixed point values for satisfied predicates and is then
clamped to its cap. The total is always the sum of the clamped categories.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

from .helpers import (
    CATEGORY_CAPS,
    WEAK_AREA_THRESHOLDS,
    WEAK_AREA_LABELS,
    ScoreDimension,
    ScoreCategory,
    clamp_score,
    round_half_up,
    resolve_reference_year,
    get_score_category,
)
from .signals import SignalBundle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryScores:
    """Six clamped category scores. The total is derived, never stored."""
    speed: int
    mobile: int
    security: int
    seo: int
    geo: int
    design: int

    def __post_init__(self):
        for dimension, cap in CATEGORY_CAPS.items():
            value = getattr(self, dimension.value)
            if not 0 <= value <= cap:
                raise ValueError(f"{dimension.value} score {value} outside [0, {cap}]")

    @property
    def total(self) -> int:
        return self.speed + self.mobile + self.security + self.seo + self.geo + self.design

    @property
    def category(self) -> ScoreCategory:
        return get_score_category(self.total)

    def get(self, dimension: ScoreDimension) -> int:
        return getattr(self, dimension.value)

    def weak_areas(self) -> list:
        """Human-readable labels of categories under their weak-area threshold."""
        return [
            WEAK_AREA_LABELS[dimension]
            for dimension, threshold in WEAK_AREA_THRESHOLDS.items()
            if self.get(dimension) < threshold
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speed": self.speed,
            "mobile": self.mobile,
            "security": self.security,
            "seo": self.seo,
            "geo": self.geo,
            "design": self.design,
            "total": self.total,
            "category": self.category.value,
        }

    @classmethod
    def from_raw(cls, **raw: float) -> "CategoryScores":
        """Clamp raw category values and build the scores."""
        return cls(**{
            dimension.value: clamp_score(raw.get(dimension.value, 0), cap)
            for dimension, cap in CATEGORY_CAPS.items()
        })


def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


# =============================================================================
# CATEGORY SCORERS (raw, unclamped points)
# =============================================================================

def calculate_speed_score(bundle: SignalBundle) -> float:
    """Speed & Performance points (LCP 8, FCP 5, TTFB 4, CLS 3)."""
    score = 0

    # LCP - Largest Contentful Paint
    if _below(bundle.lcp, 2500):
        score += 8
    elif _below(bundle.lcp, 4000):
        score += 5
    elif _below(bundle.lcp, 6000):
        score += 2

    # FCP - First Contentful Paint
    if _below(bundle.fcp, 1800):
        score += 5
    elif _below(bundle.fcp, 3000):
        score += 3
    elif _below(bundle.fcp, 5000):
        score += 1

    # TTFB - Time to First Byte
    if _below(bundle.ttfb, 800):
        score += 4
    elif _below(bundle.ttfb, 1800):
        score += 2

    # CLS - Cumulative Layout Shift
    if _below(bundle.cls, 0.1):
        score += 3
    elif _below(bundle.cls, 0.25):
        score += 1

    return score


def calculate_mobile_score(bundle: SignalBundle) -> float:
    """Mobile Optimization points."""
    score = 0
    if bundle.is_true("has_viewport_meta"):
        score += 4
    if bundle.is_true("has_responsive_images"):
        score += 3
    if bundle.is_true("touch_targets_ok"):
        score += 3
    if bundle.is_false("has_horizontal_scroll"):
        score += 3
    if bundle.is_true("text_readable"):
        score += 2
    return score


def calculate_security_score(bundle: SignalBundle) -> float:
    """Security points (HTTPS is worth half the category)."""
    score = 0
    if bundle.is_true("has_https"):
        score += 5
    if bundle.is_false("has_mixed_content"):
        score += 2
    if bundle.is_true("has_security_headers"):
        score += 2
    if bundle.is_true("valid_certificate"):
        score += 1
    return score


def calculate_seo_score(bundle: SignalBundle) -> float:
    """SEO points."""
    score = 0

    # Title tag (3 points)
    if bundle.title:
        score += 1
        length = bundle.title_length or 0
        if 50 <= length <= 60:
            score += 2
        elif 30 <= length <= 70:
            score += 1

    # Meta description (3 points)
    if bundle.meta_description:
        score += 1
        length = bundle.description_length or 0
        if 150 <= length <= 160:
            score += 2
        elif 100 <= length <= 200:
            score += 1

    # H1 (2 points)
    if bundle.h1:
        score += 1
    if bundle.h1_count == 1:
        score += 1

    if bundle.is_true("has_proper_heading_structure"):
        score += 2

    # Alt texts (2 points); no images means no alt problem
    alt_ratio = bundle.alt_ratio
    if alt_ratio is None:
        if bundle.total_images == 0:
            score += 2
    elif alt_ratio >= 0.9:
        score += 2
    elif alt_ratio >= 0.5:
        score += 1

    if bundle.is_true("has_sitemap"):
        score += 2
    if bundle.is_true("has_robots_txt"):
        score += 1
    if bundle.is_true("has_canonical"):
        score += 2
    if bundle.is_true("has_structured_data"):
        score += 3

    return score


def calculate_geo_score(bundle: SignalBundle, reference_year: Optional[int] = None) -> float:
    """
    GEO points, for AI search engines (ChatGPT, Perplexity, AI Overviews).

    Args:
        bundle: Signal bundle
        reference_year: Year used for the content freshness rule
    """
    year = resolve_reference_year(reference_year)
    score = 0

    # FAQ section or Q&A format
    if bundle.is_true("has_faq_section"):
        score += 3
    elif bundle.is_true("has_qa_format"):
        score += 1

    # Structured data
    if bundle.is_true("has_local_business_schema"):
        score += 2
    elif bundle.is_true("has_any_schema"):
        score += 1

    # Concrete information
    if bundle.is_true("has_address"):
        score += 1
    if bundle.is_true("has_opening_hours"):
        score += 1
    if bundle.is_true("has_pricing"):
        score += 1

    if bundle.is_true("has_statistics"):
        score += 2

    # Content freshness
    if bundle.content_year:
        if bundle.content_year >= year - 1:
            score += 2
        elif bundle.content_year >= year - 2:
            score += 1

    if bundle.is_true("has_about_page"):
        score += 1
    if bundle.is_true("has_contact_page"):
        score += 1

    # Natural language vs keyword stuffing
    if bundle.natural_language_score is not None and bundle.natural_language_score > 0.7:
        score += 1

    return score


_IMAGE_QUALITY_POINTS = {"high": 6, "medium": 3, "low": 1}


def calculate_design_score(bundle: SignalBundle, reference_year: Optional[int] = None) -> float:
    """
    Design & UX points, rounded half-up.

    Args:
        bundle: Signal bundle
        reference_year: Year used for the visual-age rule
    """
    year = resolve_reference_year(reference_year)
    score = 0.0

    # Visual age based on copyright year
    if bundle.copyright_year:
        if bundle.copyright_year >= year - 1:
            score += 4
        elif bundle.copyright_year >= year - 3:
            score += 2
        elif bundle.copyright_year >= year - 5:
            score += 1

    if bundle.is_true("uses_flexbox") or bundle.is_true("uses_grid"):
        score += 2
    if bundle.is_true("uses_webfonts"):
        score += 2

    score += _IMAGE_QUALITY_POINTS.get((bundle.image_quality or "").lower(), 0)

    if bundle.is_true("has_booking_system"):
        score += 2

    # Contact options, half a point each
    for channel in ("has_phone", "has_whatsapp", "has_contact_form", "has_email"):
        if bundle.is_true(channel):
            score += 0.5

    if bundle.is_true("has_pricing"):
        score += 2

    return round_half_up(score)


# =============================================================================
# ENTRY POINT
# =============================================================================

def calculate_all_scores(
    bundle: SignalBundle,
    reference_year: Optional[int] = None,
) -> CategoryScores:
    """
    Calculate all six category scores for a signal bundle.

    Args:
        bundle: Signal bundle of one analysis run
        reference_year: Year for freshness rules (defaults to current UTC year)

    Returns:
        CategoryScores with clamped values; total derived from them
    """
    scores = CategoryScores.from_raw(
        speed=calculate_speed_score(bundle),
        mobile=calculate_mobile_score(bundle),
        security=calculate_security_score(bundle),
        seo=calculate_seo_score(bundle),
        geo=calculate_geo_score(bundle, reference_year),
        design=calculate_design_score(bundle, reference_year),
    )
    logger.debug(f"Scored bundle: {scores.to_dict()}")
    return scores
