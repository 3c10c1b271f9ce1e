"""
Signal Bundle

Normalized technical, content, security and performance facts about one
analyzed URL. Produced by the external signal provider, consumed by the
scoring engine and the finding generator.

Every field is optional. None means "not measured" and is always read
fail-closed: a missing positive signal never earns points.
"""

import math
import re
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Any, List, Optional, Union, get_args, get_origin


class InvalidSignalValue(ValueError):
    """A provider value doesn't match the type of its signal."""
    def __init__(self, name: str, value: Any):
        super().__init__(f"Signal '{name}' has invalid value {value!r}")
        self.name = name
        self.value = value


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# Provider keys whose snake_case conversion doesn't match our field names
_KEY_ALIASES: Dict[str, str] = {
    "performance_score": "page_speed_score",
    "has_whats_app": "has_whatsapp",
    "operator_count": "estimated_operator_count",
}


def _to_snake(key: str) -> str:
    snake = _CAMEL_RE.sub("_", key).lower()
    return _KEY_ALIASES.get(snake, snake)


@dataclass(frozen=True)
class SignalBundle:
    """Immutable input of one analysis run."""

    # Speed (milliseconds, CLS unitless)
    lcp: Optional[float] = None
    fcp: Optional[float] = None
    ttfb: Optional[float] = None
    cls: Optional[float] = None
    tbt: Optional[float] = None
    page_speed_score: Optional[int] = None

    # Mobile
    has_viewport_meta: Optional[bool] = None
    has_responsive_images: Optional[bool] = None
    touch_targets_ok: Optional[bool] = None
    has_horizontal_scroll: Optional[bool] = None
    text_readable: Optional[bool] = None

    # Security
    has_https: Optional[bool] = None
    has_mixed_content: Optional[bool] = None
    has_security_headers: Optional[bool] = None
    valid_certificate: Optional[bool] = None

    # SEO
    title: Optional[str] = None
    title_length: Optional[int] = None
    meta_description: Optional[str] = None
    description_length: Optional[int] = None
    h1: Optional[str] = None
    h1_count: Optional[int] = None
    has_proper_heading_structure: Optional[bool] = None
    images_with_alt: Optional[int] = None
    total_images: Optional[int] = None
    has_sitemap: Optional[bool] = None
    has_robots_txt: Optional[bool] = None
    has_canonical: Optional[bool] = None
    has_structured_data: Optional[bool] = None
    structured_data_types: List[str] = field(default_factory=list)

    # GEO (generative engine optimization)
    has_faq_section: Optional[bool] = None
    has_qa_format: Optional[bool] = None
    has_local_business_schema: Optional[bool] = None
    has_any_schema: Optional[bool] = None
    has_address: Optional[bool] = None
    has_opening_hours: Optional[bool] = None
    has_pricing: Optional[bool] = None
    has_statistics: Optional[bool] = None
    content_year: Optional[int] = None
    has_about_page: Optional[bool] = None
    has_contact_page: Optional[bool] = None
    natural_language_score: Optional[float] = None

    # Design & UX
    copyright_year: Optional[int] = None
    uses_flexbox: Optional[bool] = None
    uses_grid: Optional[bool] = None
    uses_webfonts: Optional[bool] = None
    image_quality: Optional[str] = None  # high, medium, low, unknown
    has_booking_system: Optional[bool] = None
    has_phone: Optional[bool] = None
    has_whatsapp: Optional[bool] = None
    has_contact_form: Optional[bool] = None
    has_email: Optional[bool] = None
    cms_detected: Optional[str] = None

    # Lead sizing
    estimated_operator_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SignalBundle":
        """
        Build a bundle from a provider payload.

        Accepts camelCase or snake_case keys, drops unknown keys.

        Raises:
            InvalidSignalValue: A value of the wrong type (e.g. "2100" for lcp)
        """
        if not data:
            return cls()

        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _to_snake(key)
            if name in _FIELD_TYPES and value is not None:
                values[name] = _check_value(name, _FIELD_TYPES[name], value)

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Snake-case mapping, as persisted with the analysis."""
        return asdict(self)

    def is_true(self, name: str) -> bool:
        """True only when the signal was measured and is exactly True."""
        return getattr(self, name) is True

    def is_false(self, name: str) -> bool:
        """True only when the signal was measured and is exactly False."""
        return getattr(self, name) is False

    def is_missing(self, name: str) -> bool:
        """Positive signal absent or unmeasured."""
        return getattr(self, name) is not True

    @property
    def alt_ratio(self) -> Optional[float]:
        """Share of images with alt text, None when there are no images."""
        if not self.total_images:
            return None
        return (self.images_with_alt or 0) / self.total_images


def _base_type(annotation) -> type:
    """Optional[float] -> float, List[str] -> list."""
    origin = get_origin(annotation)
    if origin is Union:
        return next(arg for arg in get_args(annotation) if arg is not type(None))
    return origin or annotation


_FIELD_TYPES: Dict[str, type] = {f.name: _base_type(f.type) for f in fields(SignalBundle)}


def _is_number(value: Any) -> bool:
    # bool is an int subclass
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _check_value(name: str, expected: type, value: Any) -> Any:
    if expected is bool:
        if isinstance(value, bool):
            return value
    elif expected is float:
        if _is_number(value):
            return value
    elif expected is int:
        if _is_number(value) and float(value).is_integer():
            return int(value)
    elif expected is str:
        if isinstance(value, str):
            return value
    elif expected is list:
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return list(value)
    raise InvalidSignalValue(name, value)
