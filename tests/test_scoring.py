"""
Test Suite for the Scoring Engine

Tests category point tables, clamping, the derived total and
the score-category thresholds.
"""

import math

import pytest

from siteaudit.scoring import (
    CATEGORY_CAPS,
    CategoryScores,
    InvalidSignalValue,
    ScoreCategory,
    ScoreDimension,
    SignalBundle,
    calculate_all_scores,
    calculate_design_score,
    calculate_geo_score,
    calculate_security_score,
    calculate_seo_score,
    calculate_speed_score,
    clamp_score,
    get_score_category,
    round_half_up,
)

REFERENCE_YEAR = 2026


class TestSignalBundle:
    """Test provider payload normalization."""

    def test_camel_case_keys(self):
        """camelCase provider keys map onto snake_case fields."""
        bundle = SignalBundle.from_dict({"hasHttps": True, "h1Count": 2, "hasWhatsApp": True})
        assert bundle.has_https is True
        assert bundle.h1_count == 2
        assert bundle.has_whatsapp is True

    def test_unknown_keys_ignored(self):
        bundle = SignalBundle.from_dict({"somethingElse": 1, "lcp": 2000})
        assert bundle.lcp == 2000

    def test_empty_payload(self):
        """Missing keys stay unmeasured."""
        bundle = SignalBundle.from_dict(None)
        assert bundle.has_https is None
        assert bundle.structured_data_types == []

    def test_alt_ratio(self):
        assert SignalBundle(total_images=4, images_with_alt=3).alt_ratio == 0.75
        assert SignalBundle(total_images=0).alt_ratio is None
        assert SignalBundle().alt_ratio is None

    def test_null_values_stay_unmeasured(self):
        bundle = SignalBundle.from_dict({"hasHttps": None, "structuredDataTypes": None})
        assert bundle.has_https is None
        assert bundle.structured_data_types == []

    def test_numeric_widening(self):
        """Ints are fine for float signals, integral floats for int signals."""
        bundle = SignalBundle.from_dict({"cls": 0, "copyrightYear": 2024.0, "lcp": 2100.5})
        assert bundle.cls == 0
        assert bundle.copyright_year == 2024
        assert isinstance(bundle.copyright_year, int)
        assert bundle.lcp == 2100.5

    @pytest.mark.parametrize("payload,name", [
        ({"lcp": "2100"}, "lcp"),
        ({"lcp": True}, "lcp"),
        ({"lcp": math.nan}, "lcp"),
        ({"h1Count": 1.5}, "h1_count"),
        ({"hasHttps": "true"}, "has_https"),
        ({"hasHttps": 1}, "has_https"),
        ({"title": 42}, "title"),
        ({"structuredDataTypes": 5}, "structured_data_types"),
        ({"structuredDataTypes": "LocalBusiness"}, "structured_data_types"),
        ({"structuredDataTypes": ["FAQPage", 3]}, "structured_data_types"),
    ])
    def test_wrong_types_rejected(self, payload, name):
        with pytest.raises(InvalidSignalValue) as exc_info:
            SignalBundle.from_dict(payload)
        assert exc_info.value.name == name


class TestCategoryScorers:
    """Test the per-category point tables."""

    def test_speed_bands(self):
        fast = SignalBundle(lcp=2000, fcp=1500, ttfb=500, cls=0.05)
        assert calculate_speed_score(fast) == 20

        middle = SignalBundle(lcp=3000, fcp=2500, ttfb=1000, cls=0.2)
        assert calculate_speed_score(middle) == 5 + 3 + 2 + 1

    def test_speed_missing_metrics_earn_nothing(self):
        assert calculate_speed_score(SignalBundle()) == 0

    def test_security_fail_closed(self):
        """Unmeasured mixed content earns no 'absence' points."""
        assert calculate_security_score(SignalBundle(has_https=True)) == 5
        assert calculate_security_score(SignalBundle(has_https=True, has_mixed_content=False)) == 7

    def test_seo_title_length_bands(self):
        assert calculate_seo_score(SignalBundle(title="x", title_length=55)) == 3
        assert calculate_seo_score(SignalBundle(title="x", title_length=65)) == 2
        assert calculate_seo_score(SignalBundle(title="x", title_length=10)) == 1

    def test_seo_no_images_is_no_alt_problem(self):
        assert calculate_seo_score(SignalBundle(total_images=0)) == 2
        assert calculate_seo_score(SignalBundle()) == 0

    def test_geo_content_freshness(self):
        assert calculate_geo_score(SignalBundle(content_year=2025), REFERENCE_YEAR) == 2
        assert calculate_geo_score(SignalBundle(content_year=2024), REFERENCE_YEAR) == 1
        assert calculate_geo_score(SignalBundle(content_year=2020), REFERENCE_YEAR) == 0

    def test_geo_faq_beats_qa_format(self):
        assert calculate_geo_score(SignalBundle(has_faq_section=True, has_qa_format=True), REFERENCE_YEAR) == 3
        assert calculate_geo_score(SignalBundle(has_qa_format=True), REFERENCE_YEAR) == 1

    def test_design_half_points_round_half_up(self):
        """Three contact channels = 1.5 -> 2."""
        bundle = SignalBundle(has_phone=True, has_email=True, has_contact_form=True)
        assert calculate_design_score(bundle, REFERENCE_YEAR) == 2

    def test_design_visual_age(self):
        assert calculate_design_score(SignalBundle(copyright_year=2025), REFERENCE_YEAR) == 4
        assert calculate_design_score(SignalBundle(copyright_year=2023), REFERENCE_YEAR) == 2
        assert calculate_design_score(SignalBundle(copyright_year=2021), REFERENCE_YEAR) == 1
        assert calculate_design_score(SignalBundle(copyright_year=2015), REFERENCE_YEAR) == 0


class TestClamping:
    """Test the [0, cap] invariant and the derived total."""

    def test_clamp_score(self):
        assert clamp_score(25, 20) == 20
        assert clamp_score(-3, 20) == 0
        assert clamp_score(math.nan, 20) == 0
        assert clamp_score(None, 20) == 0

    def test_from_raw_clamps(self):
        scores = CategoryScores.from_raw(speed=25, mobile=3.0, design=-3, geo=math.nan)
        assert scores.speed == 20
        assert scores.mobile == 3
        assert scores.design == 0
        assert scores.geo == 0
        assert scores.security == 0

    def test_perfect_site_scores_every_cap(self, excellent_bundle):
        scores = calculate_all_scores(excellent_bundle, REFERENCE_YEAR)
        for dimension, cap in CATEGORY_CAPS.items():
            assert scores.get(dimension) == cap
        assert scores.total == 100
        assert scores.category == ScoreCategory.EXCELLENT

    def test_total_is_sum_of_categories(self, excellent_bundle, end_to_end_bundle):
        for bundle in (excellent_bundle, end_to_end_bundle, SignalBundle()):
            scores = calculate_all_scores(bundle, REFERENCE_YEAR)
            assert scores.total == sum(scores.get(d) for d in ScoreDimension)
            assert 0 <= scores.total <= 100

    def test_out_of_range_scores_rejected(self):
        with pytest.raises(ValueError):
            CategoryScores(speed=21, mobile=0, security=0, seo=0, geo=0, design=0)

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(3.4) == 3


class TestScoreCategory:
    """Test the total -> label thresholds at every boundary."""

    @pytest.mark.parametrize("total,expected", [
        (0, ScoreCategory.CRITICAL),
        (30, ScoreCategory.CRITICAL),
        (31, ScoreCategory.POOR),
        (50, ScoreCategory.POOR),
        (51, ScoreCategory.AVERAGE),
        (70, ScoreCategory.AVERAGE),
        (71, ScoreCategory.GOOD),
        (85, ScoreCategory.GOOD),
        (86, ScoreCategory.EXCELLENT),
        (100, ScoreCategory.EXCELLENT),
    ])
    def test_boundaries(self, total, expected):
        assert get_score_category(total) == expected


class TestEndToEndScoring:
    """The reference bundle: 5/3/2/8/2/6 = 26, critical."""

    def test_category_scores(self, end_to_end_bundle):
        scores = calculate_all_scores(end_to_end_bundle, REFERENCE_YEAR)
        assert (scores.speed, scores.mobile, scores.security, scores.seo, scores.geo, scores.design) == (
            5, 3, 2, 8, 2, 6
        )
        assert scores.total == 26
        assert scores.category == ScoreCategory.CRITICAL

    def test_to_dict(self, end_to_end_bundle):
        data = calculate_all_scores(end_to_end_bundle, REFERENCE_YEAR).to_dict()
        assert data["total"] == 26
        assert data["category"] == "critical"

    def test_weak_areas(self, end_to_end_bundle):
        scores = calculate_all_scores(end_to_end_bundle, REFERENCE_YEAR)
        assert scores.weak_areas() == [
            "loading speed", "mobile optimization", "security", "SEO",
            "AI search optimization", "design and UX",
        ]
