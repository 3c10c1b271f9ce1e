"""
Finding Rules

Declarative rule table for the finding generator. Each rule is a pure
predicate over the signal bundle that, when true, emits exactly one finding
with a fixed severity and priority.

Declaration order matters: findings with equal priority keep this order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from ..models import BusinessType, BUSINESS_TYPE_LABELS
from ..scoring.helpers import ScoreDimension
from ..scoring.signals import SignalBundle


class FindingSeverity(Enum):
    """Finding severity."""
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"


@dataclass(frozen=True)
class FindingContext:
    """Inputs besides the bundle that rules may read."""
    business_type: BusinessType
    reference_year: int

    @property
    def business_label(self) -> str:
        return BUSINESS_TYPE_LABELS[self.business_type]


Predicate = Callable[[SignalBundle, FindingContext], bool]
Text = Union[str, Callable[[SignalBundle, FindingContext], str]]


@dataclass(frozen=True)
class FindingRule:
    """Definition of one finding rule."""
    id: str
    category: ScoreDimension
    severity: FindingSeverity
    priority: int
    predicate: Predicate
    title: Text
    description: Text
    impact: Text

    def __post_init__(self):
        if not 1 <= self.priority <= 10:
            raise ValueError(f"Rule {self.id}: priority {self.priority} outside 1-10")

    def render(self, text: Text, bundle: SignalBundle, context: FindingContext) -> str:
        return text(bundle, context) if callable(text) else text


# =============================================================================
# PREDICATE HELPERS
# =============================================================================

def _over(value: Optional[float], threshold: float) -> bool:
    return value is not None and value > threshold


def _between(value: Optional[float], low: float, high: float) -> bool:
    """low < value <= high"""
    return value is not None and low < value <= high


def _under(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _seconds(ms: Optional[float]) -> str:
    return f"{(ms or 0) / 1000:.1f}"


def _alt_missing_ratio(b: SignalBundle) -> Optional[float]:
    ratio = b.alt_ratio
    return None if ratio is None else 1 - ratio


def _images_without_alt(b: SignalBundle) -> int:
    return (b.total_images or 0) - (b.images_with_alt or 0)


def _has_h1(b: SignalBundle) -> bool:
    return bool(b.h1) and (b.h1_count or 0) > 0


# =============================================================================
# RULE TABLE
# =============================================================================

S = ScoreDimension
CRITICAL = FindingSeverity.CRITICAL
WARNING = FindingSeverity.WARNING
OPPORTUNITY = FindingSeverity.OPPORTUNITY


FINDING_RULES: Tuple[FindingRule, ...] = (
    # --- Speed ---------------------------------------------------------------
    FindingRule(
        id="speed-lcp-very-slow", category=S.SPEED, severity=CRITICAL, priority=10,
        predicate=lambda b, c: _over(b.lcp, 6000),
        title="Main content takes over 6 seconds to load",
        description=lambda b, c: (
            f"Largest Contentful Paint is {_seconds(b.lcp)} s. Google recommends under 2.5 s."
        ),
        impact="53% of visitors leave before the page finishes loading",
    ),
    FindingRule(
        id="speed-lcp-slow", category=S.SPEED, severity=WARNING, priority=7,
        predicate=lambda b, c: _between(b.lcp, 4000, 6000),
        title="Slow loading of the main content",
        description=lambda b, c: f"LCP is {_seconds(b.lcp)} s. The target is under 2.5 s.",
        impact="Slow loading lowers conversions by 20-30%",
    ),
    FindingRule(
        id="speed-ttfb-slow", category=S.SPEED, severity=WARNING, priority=6,
        predicate=lambda b, c: _over(b.ttfb, 1800),
        title="Slow server response",
        description=lambda b, c: (
            f"The server responds in {_seconds(b.ttfb)} s (TTFB). Recommended is under 0.8 s."
        ),
        impact="May indicate overloaded or misconfigured hosting",
    ),
    FindingRule(
        id="speed-pagespeed-critical", category=S.SPEED, severity=CRITICAL, priority=9,
        predicate=lambda b, c: _under(b.page_speed_score, 50),
        title=lambda b, c: f"Google PageSpeed score only {b.page_speed_score}/100",
        description="A low score hurts search rankings and user experience.",
        impact="Google favours fast websites in mobile search",
    ),
    FindingRule(
        id="speed-pagespeed-mediocre", category=S.SPEED, severity=WARNING, priority=5,
        predicate=lambda b, c: b.page_speed_score is not None and 50 <= b.page_speed_score < 70,
        title=lambda b, c: f"PageSpeed score {b.page_speed_score}/100 leaves room for improvement",
        description="Optimizing images and code can reach a score of 90+.",
        impact="A faster website converts better",
    ),

    # --- Mobile --------------------------------------------------------------
    FindingRule(
        id="mobile-no-viewport", category=S.MOBILE, severity=CRITICAL, priority=10,
        predicate=lambda b, c: b.is_missing("has_viewport_meta"),
        title="Website is not optimized for mobile",
        description="The viewport meta tag is missing, so phones render the desktop layout.",
        impact="Over 70% of visitors arrive on mobile devices",
    ),
    FindingRule(
        id="mobile-horizontal-scroll", category=S.MOBILE, severity=WARNING, priority=6,
        predicate=lambda b, c: b.is_true("has_horizontal_scroll"),
        title="Horizontal scrolling on mobile",
        description="Some elements are wider than the screen, which hurts usability.",
        impact="Frustrates users and shortens time on site",
    ),
    FindingRule(
        id="mobile-touch-targets", category=S.MOBILE, severity=WARNING, priority=5,
        predicate=lambda b, c: b.is_missing("touch_targets_ok"),
        title="Buttons are too small to tap",
        description="Interactive elements are smaller than 48px.",
        impact="Users tap the wrong link",
    ),
    FindingRule(
        id="mobile-text-unreadable", category=S.MOBILE, severity=WARNING, priority=4,
        predicate=lambda b, c: b.is_missing("text_readable"),
        title="Text is hard to read on mobile",
        description="The font is too small or has poor contrast.",
        impact="Forces users to zoom in",
    ),

    # --- Security ------------------------------------------------------------
    FindingRule(
        id="security-no-https", category=S.SECURITY, severity=CRITICAL, priority=10,
        predicate=lambda b, c: b.is_missing("has_https"),
        title="Website has no HTTPS",
        description='Browsers mark the website as "Not secure", which scares customers away.',
        impact="Loss of trust and a negative SEO signal",
    ),
    FindingRule(
        id="security-mixed-content", category=S.SECURITY, severity=WARNING, priority=5,
        predicate=lambda b, c: b.is_true("has_mixed_content"),
        title="Mixed content (HTTP on an HTTPS page)",
        description="Some images or scripts are loaded over plain HTTP.",
        impact="Can trigger browser warnings",
    ),
    FindingRule(
        id="security-no-headers", category=S.SECURITY, severity=OPPORTUNITY, priority=3,
        predicate=lambda b, c: b.is_missing("has_security_headers") and b.is_true("has_https"),
        title="Security headers are missing",
        description="Security headers (CSP, X-Frame-Options) are not set.",
        impact="Higher risk of XSS and clickjacking",
    ),

    # --- SEO -----------------------------------------------------------------
    FindingRule(
        id="seo-no-title", category=S.SEO, severity=CRITICAL, priority=10,
        predicate=lambda b, c: not b.title,
        title="Title tag is missing",
        description="The page has no title, so Google shows arbitrary text.",
        impact="Sharply lowers click-through rate in search results",
    ),
    FindingRule(
        id="seo-title-long", category=S.SEO, severity=WARNING, priority=4,
        predicate=lambda b, c: bool(b.title) and _over(b.title_length, 70),
        title=lambda b, c: f"Title tag is too long ({b.title_length} characters)",
        description="The ideal length is 50-60 characters. Longer titles get truncated.",
        impact="A truncated title is less attractive in results",
    ),
    FindingRule(
        id="seo-title-short", category=S.SEO, severity=WARNING, priority=3,
        predicate=lambda b, c: bool(b.title) and _under(b.title_length, 30),
        title=lambda b, c: f"Title tag is too short ({b.title_length} characters)",
        description="The title doesn't use its full keyword potential.",
        impact="Less information means a lower click-through rate",
    ),
    FindingRule(
        id="seo-no-meta-description", category=S.SEO, severity=CRITICAL, priority=9,
        predicate=lambda b, c: not b.meta_description,
        title="Meta description is missing",
        description="Google shows random page text instead of your description.",
        impact="You can't control what customers see in results",
    ),
    FindingRule(
        id="seo-no-h1", category=S.SEO, severity=WARNING, priority=6,
        predicate=lambda b, c: not _has_h1(b),
        title="H1 heading is missing",
        description="The main page heading is missing or not marked up as H1.",
        impact="Google can't tell what the page is about",
    ),
    FindingRule(
        id="seo-multiple-h1", category=S.SEO, severity=WARNING, priority=4,
        predicate=lambda b, c: _has_h1(b) and _over(b.h1_count, 1),
        title=lambda b, c: f"Multiple H1 headings on the page ({b.h1_count})",
        description="There should be exactly one H1 naming the main topic.",
        impact="Confusing for search engines",
    ),
    FindingRule(
        id="seo-images-without-alt", category=S.SEO, severity=CRITICAL, priority=8,
        predicate=lambda b, c: _under(b.alt_ratio, 0.5),
        title=lambda b, c: f"Images without alt text ({round(_alt_missing_ratio(b) * 100)}%)",
        description=lambda b, c: (
            f"{_images_without_alt(b)} of {b.total_images} images have no alt text."
        ),
        impact="Google can't index the images and you lose image-search traffic",
    ),
    FindingRule(
        id="seo-some-images-without-alt", category=S.SEO, severity=WARNING, priority=4,
        predicate=lambda b, c: b.alt_ratio is not None and 0.5 <= b.alt_ratio < 0.9,
        title="Some images have no alt text",
        description=lambda b, c: f"{_images_without_alt(b)} images have no description.",
        impact="You lose potential visitors from Google Images",
    ),
    FindingRule(
        id="seo-no-sitemap", category=S.SEO, severity=WARNING, priority=5,
        predicate=lambda b, c: b.is_missing("has_sitemap"),
        title="sitemap.xml is missing",
        description="Google has trouble discovering every page of the website.",
        impact="Some pages may never get indexed",
    ),
    FindingRule(
        id="seo-no-structured-data", category=S.SEO, severity=OPPORTUNITY, priority=6,
        predicate=lambda b, c: b.is_missing("has_structured_data"),
        title="Structured data (Schema.org) is missing",
        description="The website has no JSON-LD markup for rich snippets.",
        impact="LocalBusiness schema improves visibility in local search",
    ),

    # --- GEO -----------------------------------------------------------------
    FindingRule(
        id="geo-no-faq", category=S.GEO, severity=WARNING, priority=7,
        predicate=lambda b, c: b.is_missing("has_faq_section") and b.is_missing("has_qa_format"),
        title="FAQ section is missing",
        description="AI assistants (ChatGPT, Perplexity) need structured answers to common questions.",
        impact="An FAQ with 10+ questions can raise citations in AI answers by 40%",
    ),
    FindingRule(
        id="geo-no-local-business-schema", category=S.GEO, severity=WARNING, priority=6,
        predicate=lambda b, c: b.is_missing("has_local_business_schema"),
        title="LocalBusiness schema is missing",
        description="AI search engines can't verify the credibility and location of the business.",
        impact="Schema with opening hours and prices increases AI citations",
    ),
    FindingRule(
        id="geo-no-business-info", category=S.GEO, severity=WARNING, priority=5,
        predicate=lambda b, c: b.is_missing("has_address") and b.is_missing("has_opening_hours"),
        title="Concrete business information is missing",
        description="The website lists neither an address nor opening hours.",
        impact='AI assistants can\'t answer "where is it" or "when is it open"',
    ),
    FindingRule(
        id="geo-pricing-unstructured", category=S.GEO, severity=OPPORTUNITY, priority=4,
        predicate=lambda b, c: b.is_missing("has_pricing"),
        title="Pricing is not structured",
        description="A clear price list with concrete prices helps AI answer price questions.",
        impact=lambda b, c: f'Customers searching "{c.business_label} prices" won\'t find you',
    ),
    FindingRule(
        id="geo-stale-content", category=S.GEO, severity=WARNING, priority=4,
        predicate=lambda b, c: (b.content_year or 0) < c.reference_year - 2,
        title="Content looks outdated",
        description=lambda b, c: (
            f"The copyright or last-updated date is from {b.content_year or 'an unknown year'}."
        ),
        impact="AI prefers current content when generating answers",
    ),
    FindingRule(
        id="geo-optimization", category=S.GEO, severity=OPPORTUNITY, priority=8,
        predicate=lambda b, c: (
            b.is_missing("has_local_business_schema") or b.is_missing("has_faq_section")
        ),
        title="Optimization for AI search engines (GEO)",
        description="Hundreds of millions of people use ChatGPT weekly. AI optimization is the new standard.",
        impact="GEO-optimized websites get up to 40% more citations",
    ),

    # --- Design --------------------------------------------------------------
    FindingRule(
        id="design-outdated", category=S.DESIGN, severity=CRITICAL, priority=9,
        predicate=lambda b, c: bool(b.copyright_year) and b.copyright_year < c.reference_year - 5,
        title=lambda b, c: f"Design looks like it is from {b.copyright_year}",
        description="The visual style is dated and below current standards.",
        impact="The first impression puts off customers looking for quality",
    ),
    FindingRule(
        id="design-ageing", category=S.DESIGN, severity=WARNING, priority=5,
        predicate=lambda b, c: (
            bool(b.copyright_year)
            and c.reference_year - 5 <= b.copyright_year < c.reference_year - 3
        ),
        title="Design would benefit from a refresh",
        description="The website works but visually lags behind competitors.",
        impact="A modern look increases credibility",
    ),
    FindingRule(
        id="design-no-booking", category=S.DESIGN, severity=WARNING, priority=7,
        predicate=lambda b, c: b.is_missing("has_booking_system"),
        title="Online booking is missing",
        description="Customers have to call to book and many go to a competitor instead.",
        impact="Online booking can increase customers by 25-40%",
    ),
    FindingRule(
        id="design-no-contact", category=S.DESIGN, severity=CRITICAL, priority=10,
        predicate=lambda b, c: b.is_missing("has_whatsapp") and b.is_missing("has_phone"),
        title="Contact options are missing",
        description="The website shows neither a phone number nor WhatsApp.",
        impact="Customers can't get in touch",
    ),
    FindingRule(
        id="design-no-whatsapp", category=S.DESIGN, severity=OPPORTUNITY, priority=5,
        predicate=lambda b, c: b.is_missing("has_whatsapp") and b.is_true("has_phone"),
        title="Add a WhatsApp button",
        description="Many customers prefer discreet messaging over a phone call.",
        impact="A WhatsApp button can raise conversions by 25%",
    ),
    FindingRule(
        id="design-pricing-unclear", category=S.DESIGN, severity=WARNING, priority=6,
        predicate=lambda b, c: b.is_missing("has_pricing"),
        title="Pricing is not clear",
        description="Customers don't know what to expect and many leave.",
        impact="Transparent prices build trust",
    ),
    FindingRule(
        id="design-wordpress", category=S.DESIGN, severity=OPPORTUNITY, priority=4,
        predicate=lambda b, c: (b.cms_detected or "").lower() == "wordpress",
        title="Website runs on WordPress",
        description="WordPress installations are prone to security issues and tend to be slow.",
        impact="Modern stacks are faster and more secure",
    ),
)
