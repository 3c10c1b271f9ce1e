"""
Pytest Configuration and Shared Fixtures

Provides signal bundles, a per-test SQLite database and a fake signal
provider for all test modules.
"""

import asyncio
from typing import Any, Dict, Optional

import pytest

from siteaudit.database import Lead, configure_engine, init_db, reset_engine
from siteaudit.database.session import get_session_factory
from siteaudit.leads import LeadStatus
from siteaudit.models import BusinessType
from siteaudit.scoring import SignalBundle
from siteaudit.utils.config import Settings


REFERENCE_YEAR = 2026


# ============================================================================
# Signal Bundles
# ============================================================================

@pytest.fixture
def end_to_end_signals() -> Dict[str, Any]:
    """
    Provider payload (camelCase) scoring
    speed 5 / mobile 3 / security 2 / seo 8 / geo 2 / design 6 = 26.
    """
    return {
        # speed: LCP < 4000 -> 5, the rest too slow
        "lcp": 3500,
        "fcp": 6000,
        "ttfb": 2000,
        "cls": 0.3,
        # mobile: responsive images only -> 3
        "hasViewportMeta": False,
        "hasResponsiveImages": True,
        "touchTargetsOk": False,
        "hasHorizontalScroll": True,
        "textReadable": False,
        # security: no mixed content only -> 2
        "hasHttps": False,
        "hasMixedContent": False,
        "hasSecurityHeaders": False,
        "validCertificate": False,
        # seo: title 2 + h1 2 + alt 1 + sitemap 2 + robots 1 -> 8
        "title": "Relaxation Studio in the Old Town Centre",
        "titleLength": 40,
        "h1": "Welcome",
        "h1Count": 1,
        "totalImages": 10,
        "imagesWithAlt": 6,
        "hasSitemap": True,
        "hasRobotsTxt": True,
        # geo: about + contact page -> 2
        "hasFaqSection": False,
        "hasLocalBusinessSchema": False,
        "hasAboutPage": True,
        "hasContactPage": True,
        # design: flexbox 2 + medium images 3 + phone/email 1 -> 6
        "usesFlexbox": True,
        "imageQuality": "medium",
        "hasBookingSystem": False,
        "hasPhone": True,
        "hasEmail": True,
    }


@pytest.fixture
def end_to_end_bundle(end_to_end_signals) -> SignalBundle:
    return SignalBundle.from_dict(end_to_end_signals)


@pytest.fixture
def excellent_bundle() -> SignalBundle:
    """Every category at its cap."""
    return SignalBundle(
        lcp=1200, fcp=900, ttfb=300, cls=0.02, page_speed_score=97,
        has_viewport_meta=True, has_responsive_images=True, touch_targets_ok=True,
        has_horizontal_scroll=False, text_readable=True,
        has_https=True, has_mixed_content=False, has_security_headers=True, valid_certificate=True,
        title="A" * 55, title_length=55, meta_description="B" * 155, description_length=155,
        h1="Studio", h1_count=1, has_proper_heading_structure=True,
        images_with_alt=20, total_images=20, has_sitemap=True, has_robots_txt=True,
        has_canonical=True, has_structured_data=True, structured_data_types=["LocalBusiness"],
        has_faq_section=True, has_local_business_schema=True, has_address=True,
        has_opening_hours=True, has_pricing=True, has_statistics=True,
        content_year=REFERENCE_YEAR, has_about_page=True, has_contact_page=True,
        natural_language_score=0.9,
        copyright_year=REFERENCE_YEAR, uses_flexbox=True, uses_grid=True, uses_webfonts=True,
        image_quality="high", has_booking_system=True, has_phone=True, has_whatsapp=True,
        has_contact_form=True, has_email=True,
    )


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = configure_engine(f"sqlite:///{tmp_path / 'siteaudit_test.db'}")
    init_db()
    yield engine
    reset_engine()


@pytest.fixture
def db(db_engine):
    """Session on the per-test database."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_lead(db):
    """Factory for persisted leads."""
    counter = {"n": 0}

    def _make(status: LeadStatus = LeadStatus.NEW, **overrides) -> Lead:
        counter["n"] += 1
        lead = Lead(
            email=overrides.pop("email", f"owner{counter['n']}@example.com"),
            business_type=overrides.pop("business_type", BusinessType.SINGLE_OPERATOR),
            status=status,
            **overrides,
        )
        db.add(lead)
        db.commit()
        return lead

    return _make


@pytest.fixture
def test_settings() -> Settings:
    return Settings(DAILY_ANALYSIS_LIMIT=20, SIGNAL_TIMEOUT_SECONDS=0.5)


# ============================================================================
# Signal Provider
# ============================================================================

class FakeSignalProvider:
    """In-memory signal provider."""

    def __init__(self, bundle: Optional[SignalBundle] = None, error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.bundle = bundle or SignalBundle()
        self.error = error
        self.delay = delay
        self.calls = []

    async def collect(self, url: str, business_type: BusinessType) -> SignalBundle:
        self.calls.append((url, business_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.bundle

    async def close(self):
        pass


@pytest.fixture
def fake_provider_class():
    return FakeSignalProvider


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
