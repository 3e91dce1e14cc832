"""Validation run against assembled candidate records before acceptance."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

from hookah_harvester.models import Brand, BrandSummary, Flavor, FlavorSummary, Line
from hookah_harvester.parsers.text import is_valid_slug

RATING_RANGE = (0.0, 5.0)
PERCENT_RANGE = (0.0, 100.0)


@dataclass
class ValidationIssue:
    field: str
    message: str
    value: Any = None


@dataclass
class ValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)
    missing_expected: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def is_complete(self) -> bool:
        return not self.missing_expected

    def accepts(self, include_incomplete: bool) -> bool:
        return self.is_valid and (self.is_complete or include_incomplete)

    def describe(self) -> str:
        parts = [f"{i.field}: {i.message}" for i in self.issues]
        parts.extend(f"{name}: missing" for name in self.missing_expected)
        return ", ".join(parts)

    def add(self, field_name: str, message: str, value: Any = None) -> None:
        self.issues.append(ValidationIssue(field_name, message, value))


def is_valid_url(url: Optional[str]) -> bool:
    """Absolute http/https URL with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require_text(result: ValidationResult, field_name: str, value: Any) -> None:
    if value is None or not isinstance(value, str):
        result.add(field_name, "is required and must be a non-empty string", value)
    elif not value.strip():
        result.add(field_name, "cannot be empty or whitespace only", value)


def _require_slug(result: ValidationResult, value: Any, allow_path: bool = False, field_name: str = "slug") -> None:
    _require_text(result, field_name, value)
    if isinstance(value, str) and value.strip() and not is_valid_slug(value, allow_path=allow_path):
        result.add(field_name, "must contain only lowercase letters, numbers, and hyphens", value)


def _check_range(result: ValidationResult, field_name: str, value: Any, bounds: tuple[float, float]) -> None:
    if value is None:
        return
    low, high = bounds
    if not isinstance(value, (int, float)) or value < low or value > high:
        result.add(field_name, f"must be between {low:g} and {high:g}", value)


def _check_non_negative(result: ValidationResult, record: Any, *names: str) -> None:
    for name in names:
        value = getattr(record, name)
        if not isinstance(value, int) or value < 0:
            result.add(name, "must be a non-negative integer", value)


def _expect_url(result: ValidationResult, field_name: str, value: Optional[str]) -> None:
    if _is_blank(value):
        result.missing_expected.append(field_name)
    elif not is_valid_url(value):
        result.add(field_name, "must be a valid HTTP/HTTPS URL", value)


def _expect_text(result: ValidationResult, field_name: str, value: Optional[str]) -> None:
    if _is_blank(value):
        result.missing_expected.append(field_name)


def validate_brand_summary(brand: BrandSummary) -> ValidationResult:
    """Listing row: name and slug are required, description and image are expected."""
    result = ValidationResult()
    _require_text(result, "name", brand.name)
    _require_slug(result, brand.slug)
    _expect_text(result, "description", brand.description)
    _expect_url(result, "image_url", brand.image_url)
    _check_range(result, "rating", brand.rating, RATING_RANGE)
    _check_non_negative(result, brand, "ratings_count", "reviews_count", "views_count")
    return result


def validate_brand(brand: Brand) -> ValidationResult:
    result = ValidationResult()
    _require_text(result, "name", brand.name)
    _require_slug(result, brand.slug)
    _expect_text(result, "description", brand.description)
    _expect_url(result, "image_url", brand.image_url)
    if brand.website is not None and not is_valid_url(brand.website):
        result.add("website", "must be a valid HTTP/HTTPS URL", brand.website)
    if brand.founded_year is not None and not 1000 <= brand.founded_year <= 9999:
        result.add("founded_year", "must be a four digit year", brand.founded_year)
    _check_range(result, "rating", brand.rating, RATING_RANGE)
    _check_range(result, "smoke_again_percentage", brand.smoke_again_percentage, PERCENT_RANGE)
    _check_non_negative(result, brand, "ratings_count", "reviews_count", "views_count")
    return result


def validate_line(line: Line) -> ValidationResult:
    result = ValidationResult()
    _require_text(result, "name", line.name)
    _require_slug(result, line.slug, allow_path=True)
    _require_slug(result, line.brand_slug, field_name="brand_slug")
    _check_range(result, "rating", line.rating, RATING_RANGE)
    _check_non_negative(result, line, "flavors_count")
    return result


def validate_flavor_summary(flavor: FlavorSummary) -> ValidationResult:
    """Listing row: name, slug path and brand slug are required."""
    result = ValidationResult()
    _require_text(result, "name", flavor.name)
    _require_slug(result, flavor.slug, allow_path=True)
    _require_slug(result, flavor.brand_slug, field_name="brand_slug")
    _expect_text(result, "description", flavor.description)
    _expect_url(result, "image_url", flavor.image_url)
    return result


def validate_flavor(flavor: Flavor) -> ValidationResult:
    result = ValidationResult()
    if not isinstance(flavor.htreviews_id, int) or flavor.htreviews_id <= 0:
        result.add("htreviews_id", "must be a positive integer", flavor.htreviews_id)
    _require_text(result, "name", flavor.name)
    _require_slug(result, flavor.slug, allow_path=True)
    if _is_blank(flavor.brand_slug):
        result.missing_expected.append("brand_slug")
    elif not is_valid_slug(flavor.brand_slug):
        result.add("brand_slug", "must contain only lowercase letters, numbers, and hyphens", flavor.brand_slug)
    _expect_url(result, "image_url", flavor.image_url)
    _check_range(result, "rating", flavor.rating, RATING_RANGE)
    _check_range(result, "smoke_again_percentage", flavor.smoke_again_percentage, PERCENT_RANGE)
    _check_non_negative(result, flavor, "ratings_count", "reviews_count", "views_count")
    for score, count in flavor.rating_distribution.as_dict().items():
        if count < 0:
            result.add(f"rating_distribution.{score}", "must be non-negative", count)
    return result
