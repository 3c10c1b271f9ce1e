"""
Tests for the Analysis Pipeline

End-to-end runs against a fake signal provider and a per-test SQLite
database: validation, daily limit, timeouts, persistence, lead upsert
and re-runs.
"""

from uuid import uuid4

import httpx
import pytest

from siteaudit.analyzer import (
    AnalysisNotFound,
    DailyLimitExceeded,
    InvalidAnalysisInput,
    calculate_lead_score,
    parse_analysis_request,
    rerun_analysis,
    run_analysis,
)
from siteaudit.collector import HttpSignalProvider, SignalCollectionError
from siteaudit.database import Analysis, AnalysisStatus, Lead, Recommendation, repository
from siteaudit.leads import LeadStatus
from siteaudit.models import BusinessType, PackageTier
from siteaudit.scoring import SignalBundle
from siteaudit.tracking import CampaignNotFound
from siteaudit.utils.config import Settings

from conftest import REFERENCE_YEAR, FakeSignalProvider


def _request(**overrides):
    data = {
        "url": "https://www.sunrise-studio.com/",
        "business_type": "single_operator",
        "contact_name": "Alex Example",
        "contact_email": "Owner@sunrise-studio.com",
    }
    data.update(overrides)
    return parse_analysis_request(data)


class TestAnalysisRequest:
    """Test synchronous input validation."""

    def test_domain_strips_www(self):
        assert _request().domain == "sunrise-studio.com"

    def test_business_type_case_insensitive(self):
        assert _request(business_type="Multi-Operator").business_type == BusinessType.MULTI_OPERATOR

    def test_empty_email_is_none(self):
        assert _request(contact_email="  ").contact_email is None

    @pytest.mark.parametrize("overrides", [
        {"url": "ftp://sunrise-studio.com"},
        {"url": "sunrise-studio.com"},
        {"url": "https://"},
        {"business_type": "bakery"},
        {"contact_email": "not-an-email"},
        {"operator_count": -1},
    ])
    def test_invalid_input(self, overrides):
        with pytest.raises(InvalidAnalysisInput) as exc_info:
            _request(**overrides)
        assert exc_info.value.errors

    def test_lead_score(self):
        assert calculate_lead_score(26) == 74
        assert calculate_lead_score(100) == 0


class TestRunAnalysis:
    """Test run_analysis()."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, db, end_to_end_bundle, test_settings):
        """Reference bundle: total 26, critical, BASIC, lead score 74."""
        provider = FakeSignalProvider(end_to_end_bundle)
        result = await run_analysis(_request(), provider, test_settings, reference_year=REFERENCE_YEAR)

        assert result.status == AnalysisStatus.COMPLETED
        assert result.scores["total"] == 26
        assert result.scores["category"] == "critical"
        assert result.recommendation["tier"] == "basic"
        assert result.recommendation["triage_priority"] == "critical"
        assert result.findings_count >= len(result.findings)
        assert result.findings[0]["priority"] == 10

        analysis = db.get(Analysis, result.analysis_id)
        assert analysis.status == AnalysisStatus.COMPLETED
        assert analysis.total_score == 26
        assert analysis.recommended_package == PackageTier.BASIC
        assert len(analysis.findings) == result.findings_count
        assert analysis.signals["lcp"] == 3500
        assert analysis.current_recommendation.rule_name == "single_operator_low_score"

        lead = db.get(Lead, result.lead_id)
        assert lead.email == "owner@sunrise-studio.com"
        assert lead.status == LeadStatus.NEW
        assert lead.lead_score == 74
        assert lead.analysis_score == 26
        assert lead.current_analysis_id == analysis.id

    @pytest.mark.asyncio
    async def test_no_contact_no_lead(self, db, test_settings):
        result = await run_analysis(
            _request(contact_email=None), FakeSignalProvider(), test_settings, REFERENCE_YEAR
        )
        assert result.status == AnalysisStatus.COMPLETED
        assert result.lead_id is None
        assert db.query(Lead).count() == 0

    @pytest.mark.asyncio
    async def test_provider_operator_estimate_used(self, db, test_settings):
        provider = FakeSignalProvider(SignalBundle(estimated_operator_count=12))
        result = await run_analysis(_request(), provider, test_settings, REFERENCE_YEAR)
        assert result.recommendation["tier"] == "enterprise"
        assert result.recommendation["rule_name"] == "large_operation"

    @pytest.mark.asyncio
    async def test_request_operator_count_wins(self, db, test_settings):
        provider = FakeSignalProvider(SignalBundle(estimated_operator_count=12))
        result = await run_analysis(_request(operator_count=2), provider, test_settings, REFERENCE_YEAR)
        assert result.recommendation["rule_name"] == "single_operator_low_score"

    @pytest.mark.asyncio
    async def test_timeout_marks_failed(self, db):
        settings = Settings(DAILY_ANALYSIS_LIMIT=20, SIGNAL_TIMEOUT_SECONDS=0.05)
        provider = FakeSignalProvider(delay=1.0)
        result = await run_analysis(_request(), provider, settings, REFERENCE_YEAR)

        assert result.status == AnalysisStatus.FAILED
        assert "timed out" in result.error

        analysis = db.get(Analysis, result.analysis_id)
        assert analysis.status == AnalysisStatus.FAILED
        assert analysis.total_score is None
        assert analysis.error_message
        assert db.query(Recommendation).count() == 0
        assert db.query(Lead).count() == 0

    @pytest.mark.asyncio
    async def test_provider_error_marks_failed(self, db, test_settings):
        provider = FakeSignalProvider(error=SignalCollectionError("Site blocked the crawler"))
        result = await run_analysis(_request(), provider, test_settings, REFERENCE_YEAR)
        assert result.status == AnalysisStatus.FAILED
        assert "blocked" in result.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signals", [
        {"lcp": "2100"},
        {"structuredDataTypes": 5},
    ])
    async def test_mistyped_payload_marks_failed(self, db, test_settings, signals):
        provider = HttpSignalProvider(
            base_url="http://signals.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"signals": signals})),
        )
        result = await run_analysis(_request(), provider, test_settings, REFERENCE_YEAR)
        await provider.close()

        assert result.status == AnalysisStatus.FAILED
        assert "bad payload" in result.error
        assert db.get(Analysis, result.analysis_id).status == AnalysisStatus.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_marks_failed(self, db, test_settings):
        provider = FakeSignalProvider(error=RuntimeError("provider bug"))
        result = await run_analysis(_request(), provider, test_settings, REFERENCE_YEAR)

        assert result.status == AnalysisStatus.FAILED
        assert "provider bug" in result.error
        assert db.get(Analysis, result.analysis_id).status == AnalysisStatus.FAILED

    @pytest.mark.asyncio
    async def test_scoring_error_marks_failed(self, db, test_settings, monkeypatch):
        def broken(bundle, reference_year=None):
            raise ValueError("scorer exploded")

        monkeypatch.setattr("siteaudit.analyzer.pipeline.calculate_all_scores", broken)
        result = await run_analysis(_request(), FakeSignalProvider(), test_settings, REFERENCE_YEAR)

        assert result.status == AnalysisStatus.FAILED
        assert result.scores is None
        analysis = db.get(Analysis, result.analysis_id)
        assert analysis.status == AnalysisStatus.FAILED
        assert "scorer exploded" in analysis.error_message

    @pytest.mark.asyncio
    async def test_persistence_error_rolls_back_and_marks_failed(self, db, test_settings, monkeypatch):
        def broken(db, analysis, lead_score):
            raise RuntimeError("lead table unavailable")

        monkeypatch.setattr(repository, "upsert_lead_for_analysis", broken)
        result = await run_analysis(_request(), FakeSignalProvider(), test_settings, REFERENCE_YEAR)

        assert result.status == AnalysisStatus.FAILED
        assert result.lead_id is None
        analysis = db.get(Analysis, result.analysis_id)
        assert analysis.status == AnalysisStatus.FAILED
        assert analysis.total_score is None
        assert db.query(Recommendation).count() == 0

    @pytest.mark.asyncio
    async def test_daily_limit(self, db):
        settings = Settings(DAILY_ANALYSIS_LIMIT=1, SIGNAL_TIMEOUT_SECONDS=1.0)
        provider = FakeSignalProvider()
        await run_analysis(_request(), provider, settings, REFERENCE_YEAR)

        with pytest.raises(DailyLimitExceeded):
            await run_analysis(_request(), provider, settings, REFERENCE_YEAR)

        assert len(provider.calls) == 1
        assert db.query(Analysis).count() == 1

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, db, test_settings):
        provider = FakeSignalProvider()
        with pytest.raises(CampaignNotFound):
            await run_analysis(_request(campaign_id=str(uuid4())), provider, test_settings)
        assert provider.calls == []
        assert db.query(Analysis).count() == 0


class TestRerunAnalysis:
    """Test re-runs and recommendation supersession."""

    @pytest.mark.asyncio
    async def test_rerun_supersedes_recommendation(self, db, end_to_end_bundle, excellent_bundle,
                                                   test_settings):
        first = await run_analysis(
            _request(), FakeSignalProvider(end_to_end_bundle), test_settings, REFERENCE_YEAR
        )
        second = await rerun_analysis(
            first.analysis_id, FakeSignalProvider(excellent_bundle), test_settings, REFERENCE_YEAR
        )

        assert second.analysis_id != first.analysis_id
        assert second.scores["total"] == 100

        db.expire_all()
        previous = db.get(Analysis, first.analysis_id)
        latest = db.get(Analysis, second.analysis_id)

        # the earlier run is kept as it was
        assert previous.total_score == 26
        assert previous.current_recommendation is None
        assert previous.recommendations[0].superseded_at is not None

        assert latest.rerun_of_id == previous.id
        assert latest.current_recommendation is not None

        current = db.query(Recommendation).filter(Recommendation.is_current.is_(True)).all()
        assert len(current) == 1

        lead = db.get(Lead, second.lead_id)
        assert lead.id == first.lead_id
        assert lead.current_analysis_id == latest.id
        assert lead.lead_score == 0
        assert db.query(Lead).count() == 1

    @pytest.mark.asyncio
    async def test_failed_rerun_keeps_recommendation(self, db, end_to_end_bundle, test_settings):
        first = await run_analysis(
            _request(), FakeSignalProvider(end_to_end_bundle), test_settings, REFERENCE_YEAR
        )
        failed = await rerun_analysis(
            first.analysis_id, FakeSignalProvider(error=SignalCollectionError("down")), test_settings
        )
        assert failed.status == AnalysisStatus.FAILED

        db.expire_all()
        assert db.get(Analysis, first.analysis_id).current_recommendation is not None

    @pytest.mark.asyncio
    async def test_rerun_unknown(self, db, test_settings):
        with pytest.raises(AnalysisNotFound):
            await rerun_analysis(uuid4(), FakeSignalProvider(), test_settings)
