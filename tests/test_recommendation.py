"""
Tests for the Package Recommendation Engine

Covers rule-chain precedence, chain validation, rationale assembly and
the package catalogue helpers.
"""

import pytest

from siteaudit.models import BusinessType, PackageTier
from siteaudit.recommendation import (
    PACKAGES,
    RULE_CHAIN,
    RecommendationContext,
    RecommendationRule,
    RuleChainConfigurationError,
    TriagePriority,
    build_recommendation,
    calculate_roi_estimate,
    get_upgrade_benefits,
    match_rule,
    validate_rule_chain,
)
from siteaudit.scoring import CategoryScores, ScoreCategory


# 25 points: speed, mobile, seo, geo and design are weak areas
LOW_SCORES = CategoryScores(speed=5, mobile=5, security=5, seo=5, geo=5, design=0)
# 45 points
MID_SCORES = CategoryScores(speed=10, mobile=10, security=5, seo=10, geo=5, design=5)
# 90 points
HIGH_SCORES = CategoryScores(speed=18, mobile=15, security=10, seo=18, geo=12, design=17)


def _rule(name, is_default=False):
    return RecommendationRule(
        name=name, predicate=lambda c: True, tier=PackageTier.PREMIUM,
        confidence=0.5, rationale="r", is_default=is_default,
    )


class TestRuleChain:
    """Test first-match-wins precedence."""

    def test_single_operator_low_score_gets_basic(self):
        rec = build_recommendation(LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False)
        assert rec.tier == PackageTier.BASIC
        assert rec.rule_name == "single_operator_low_score"
        assert rec.confidence == 0.8

    def test_booking_upgrade(self):
        rec = build_recommendation(MID_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=True)
        assert rec.tier == PackageTier.PREMIUM
        assert rec.rule_name == "booking_upgrade"

    def test_agency_always_at_least_premium(self):
        for scores in (LOW_SCORES, MID_SCORES, HIGH_SCORES):
            rec = build_recommendation(scores, BusinessType.AGENCY, has_booking_system=False)
            assert rec.tier == PackageTier.PREMIUM

    def test_agency_with_booking_gets_enterprise(self):
        rec = build_recommendation(LOW_SCORES, BusinessType.AGENCY, has_booking_system=True)
        assert rec.tier == PackageTier.ENTERPRISE
        assert rec.rule_name == "agency_with_booking"

    def test_operator_count_outranks_business_type(self):
        rec = build_recommendation(
            LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False, operator_count=10
        )
        assert rec.tier == PackageTier.ENTERPRISE
        assert rec.rule_name == "large_operation"

    def test_below_operator_threshold(self):
        rec = build_recommendation(
            LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False, operator_count=9
        )
        assert rec.rule_name == "single_operator_low_score"

    def test_multi_operator(self):
        rec = build_recommendation(HIGH_SCORES, BusinessType.MULTI_OPERATOR, has_booking_system=False)
        assert rec.tier == PackageTier.PREMIUM
        assert rec.rule_name == "multi_operator"

    def test_default_rule(self):
        """A healthy single-operator site without booking falls through to the default."""
        rec = build_recommendation(HIGH_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False)
        assert rec.rule_name == "default"
        assert rec.tier == PackageTier.PREMIUM
        assert rec.confidence == 0.5

    def test_match_rule_returns_first_match(self):
        context = RecommendationContext(
            total_score=20, business_type=BusinessType.AGENCY,
            has_booking_system=True, operator_count=12,
        )
        assert match_rule(context).name == "large_operation"


class TestValidateRuleChain:
    """Test configuration errors in the rule chain."""

    def test_shipped_chain_valid(self):
        validate_rule_chain(RULE_CHAIN)

    def test_empty_chain(self):
        with pytest.raises(RuleChainConfigurationError):
            validate_rule_chain(())

    def test_missing_default(self):
        with pytest.raises(RuleChainConfigurationError):
            validate_rule_chain((_rule("a"), _rule("b")))

    def test_default_not_last(self):
        with pytest.raises(RuleChainConfigurationError):
            validate_rule_chain((_rule("default", is_default=True), _rule("a")))

    def test_multiple_defaults(self):
        with pytest.raises(RuleChainConfigurationError):
            validate_rule_chain((_rule("d1", is_default=True), _rule("d2", is_default=True)))

    def test_duplicate_names(self):
        with pytest.raises(RuleChainConfigurationError):
            validate_rule_chain((_rule("a"), _rule("a"), _rule("default", is_default=True)))


class TestRecommendationContent:
    """Test rationale, matched needs and triage priority."""

    def test_rationale_mentions_weak_areas(self):
        rec = build_recommendation(LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False)
        assert "Main areas to improve" in rec.rationale
        assert "loading speed" in rec.rationale

    def test_no_weak_areas_line_for_strong_site(self):
        rec = build_recommendation(HIGH_SCORES, BusinessType.MULTI_OPERATOR, has_booking_system=False)
        assert "Main areas to improve" not in rec.rationale

    def test_matched_needs_start_with_weak_areas(self):
        rec = build_recommendation(LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False)
        weak = LOW_SCORES.weak_areas()
        assert list(rec.matched_needs[:len(weak)]) == weak
        assert len(rec.matched_needs) == len(set(rec.matched_needs))

    @pytest.mark.parametrize("scores,expected", [
        (LOW_SCORES, TriagePriority.CRITICAL),
        (MID_SCORES, TriagePriority.HIGH),
        (HIGH_SCORES, TriagePriority.LOW),
    ])
    def test_triage_priority(self, scores, expected):
        rec = build_recommendation(scores, BusinessType.MULTI_OPERATOR, has_booking_system=False)
        assert rec.triage_priority == expected

    def test_to_dict(self):
        rec = build_recommendation(LOW_SCORES, BusinessType.SINGLE_OPERATOR, has_booking_system=False)
        data = rec.to_dict()
        assert data["tier"] == "basic"
        assert data["score_category"] == ScoreCategory.CRITICAL.value
        assert isinstance(data["matched_needs"], list)


class TestPackages:
    """Test the package catalogue helpers."""

    def test_every_tier_defined(self):
        assert set(PACKAGES) == set(PackageTier)
        for package in PACKAGES.values():
            assert package.price_min <= package.price_max

    def test_prices_ascend_with_tier(self):
        assert (
            PACKAGES[PackageTier.BASIC].price_max
            < PACKAGES[PackageTier.PREMIUM].price_min
            < PACKAGES[PackageTier.ENTERPRISE].price_min
        )

    def test_upgrade_benefits(self):
        benefits = get_upgrade_benefits(PackageTier.BASIC, PackageTier.PREMIUM)
        assert benefits
        assert not any(b.startswith("Everything in") for b in benefits)
        assert not set(benefits) & set(PACKAGES[PackageTier.BASIC].features)

    def test_roi_estimate(self):
        roi = calculate_roi_estimate(PackageTier.BASIC, average_transaction=2500)
        assert roi["investment_min"] == 19990
        assert roi["investment_max"] == 24990
        assert roi["customers_needed"] == 9
        assert roi["estimated_payback_months"] == "1-2"

    def test_roi_rejects_non_positive_transaction(self):
        with pytest.raises(ValueError):
            calculate_roi_estimate(PackageTier.PREMIUM, average_transaction=0)
