"""
Scoring Module for the Site Audit Engine

Maps a SignalBundle to six capped category scores and a total (0-100):

    speed (20) + mobile (15) + security (10) + seo (20) + geo (15) + design (20)

The total is always the sum of the clamped categories, and the overall label
(critical/poor/average/good/excellent) is a pure function of the total.

Example Usage:
    from siteaudit.scoring import SignalBundle, calculate_all_scores

    bundle = SignalBundle.from_dict({"hasHttps": True, "lcp": 2100})
    scores = calculate_all_scores(bundle)
    print(scores.total, scores.category.value)
"""

from .helpers import (
    CATEGORY_CAPS,
    MAX_TOTAL_SCORE,
    SCORE_DESCRIPTIONS,
    WEAK_AREA_THRESHOLDS,
    ScoreCategory,
    ScoreDimension,
    clamp_score,
    get_score_category,
    round_half_up,
)
from .signals import InvalidSignalValue, SignalBundle
from .categories import (
    CategoryScores,
    calculate_all_scores,
    calculate_speed_score,
    calculate_mobile_score,
    calculate_security_score,
    calculate_seo_score,
    calculate_geo_score,
    calculate_design_score,
)

__all__ = [
    "CATEGORY_CAPS",
    "MAX_TOTAL_SCORE",
    "SCORE_DESCRIPTIONS",
    "WEAK_AREA_THRESHOLDS",
    "ScoreCategory",
    "ScoreDimension",
    "clamp_score",
    "get_score_category",
    "round_half_up",
    "InvalidSignalValue",
    "SignalBundle",
    "CategoryScores",
    "calculate_all_scores",
    "calculate_speed_score",
    "calculate_mobile_score",
    "calculate_security_score",
    "calculate_seo_score",
    "calculate_geo_score",
    "calculate_design_score",
]
