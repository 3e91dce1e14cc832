"""Typed records produced by the extraction pipeline."""

from dataclasses import dataclass, field
from datetime import date
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class RatingDistribution:
    """How many users gave each score from 1 to 5."""

    count_1: int = 0
    count_2: int = 0
    count_3: int = 0
    count_4: int = 0
    count_5: int = 0

    def set(self, score: int, count: int) -> None:
        if 1 <= score <= 5 and count >= 0:
            setattr(self, f"count_{score}", count)

    def as_dict(self) -> dict[int, int]:
        return {score: getattr(self, f"count_{score}") for score in range(1, 6)}

    @property
    def total(self) -> int:
        return sum(self.as_dict().values())


@dataclass
class Line:
    """Product line belonging to exactly one brand."""

    slug: str
    name: str
    brand_slug: str
    status: str = ""
    flavors_count: int = 0
    rating: float = 0.0
    description: Optional[str] = None
    strength: Optional[str] = None


@dataclass
class BrandSummary:
    """Brand row as shown on the brands listing page."""

    slug: str
    name: str
    name_en: str = ""
    country: str = ""
    description: str = ""
    image_url: Optional[str] = None
    rating: float = 0.0
    ratings_count: int = 0
    reviews_count: int = 0
    views_count: int = 0
    url: Optional[str] = None
    top: bool = False


@dataclass
class Brand:
    """Full brand record from the brand detail page."""

    slug: str
    name: str
    name_en: str = ""
    description: str = ""
    country: str = ""
    website: Optional[str] = None
    founded_year: Optional[int] = None
    status: str = ""
    image_url: Optional[str] = None
    rating: float = 0.0
    ratings_count: int = 0
    reviews_count: int = 0
    views_count: int = 0
    lines: list[Line] = field(default_factory=list)
    flavor_urls: list[str] = field(default_factory=list)
    htreviews_id: Optional[int] = None
    rating_distribution: RatingDistribution = field(default_factory=RatingDistribution)
    smoke_again_percentage: Optional[float] = None


@dataclass
class FlavorTag:
    """Tag with its group, e.g. ("Фруктовый", "Вкус")."""

    id: int
    name: str
    group: str


@dataclass
class FlavorSummary:
    """Flavor row as shown on a brand's flavor listing."""

    slug: str
    name: str
    brand_slug: str
    description: str = ""
    image_url: Optional[str] = None
    name_alt: Optional[str] = None
    line_name: Optional[str] = None
    status: Optional[str] = None
    url: Optional[str] = None


@dataclass
class Flavor:
    """Full flavor record from the flavor detail page."""

    slug: str
    name: str
    brand_slug: str
    brand_name: str = ""
    htreviews_id: Optional[int] = None
    name_alt: Optional[str] = None
    description: str = ""
    line_slug: Optional[str] = None
    line_name: Optional[str] = None
    country: str = ""
    official_strength: Optional[str] = None
    user_strength: Optional[str] = None
    status: str = ""
    image_url: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    detailed_tags: list[FlavorTag] = field(default_factory=list)
    rating: float = 0.0
    ratings_count: int = 0
    reviews_count: int = 0
    views_count: int = 0
    rating_distribution: RatingDistribution = field(default_factory=RatingDistribution)
    smoke_again_percentage: float = 0.0
    date_added: Optional[date] = None
    added_by: str = ""


@dataclass
class ParseOptions:
    """Switches shared by every listing and detail parser."""

    skip_validation: bool = False
    include_incomplete: bool = False
    brand_slug: Optional[str] = None


@dataclass
class ExtractionResult(Generic[T]):
    """Outcome of parsing one page (or a merged set of pages)."""

    items: list[T] = field(default_factory=list)
    total_count: int = 0
    parsed_count: int = 0
    skipped_count: int = 0

    @classmethod
    def empty(cls) -> "ExtractionResult[T]":
        return cls()

    def merge(self, other: "ExtractionResult[T]") -> "ExtractionResult[T]":
        """Concatenate two results in order."""
        items = self.items + other.items
        return ExtractionResult(
            items=items,
            total_count=self.total_count + other.total_count,
            parsed_count=len(items),
            skipped_count=self.skipped_count + other.skipped_count,
        )
