"""
Brand and product line parsers.

Brands page layout:
    .tobacco_list_wrapper[data-active="1"]   top brands
    .tobacco_list_wrapper[data-active="0"]   other brands
        .tobacco_list_item
            a.tobacco_list_item_slug > span (name), .country
            .tobacco_list_item_image img
            .list_item_rating / .list_item_ratings_count / .list_item_reviews / .list_item_stats
            .description_content span
"""

import logging
from typing import Iterable, Optional, Union

from hookah_harvester.models import Brand, BrandSummary, ExtractionResult, Line, ParseOptions
from hookah_harvester.normalize.processor import normalize_url
from hookah_harvester.parsers.common import (
    accept_detail,
    collect_records,
    image_url,
    info_value,
    rating_distribution,
    score_stats,
    smoke_again_percentage,
    status_text,
)
from hookah_harvester.parsers.document import Document, Node, ensure_document
from hookah_harvester.parsers.text import (
    extract_slug,
    parse_flavors_count,
    parse_int,
    parse_rating,
    parse_views,
    parse_year,
)
from hookah_harvester.parsers.validation import validate_brand, validate_brand_summary, validate_line

logger = logging.getLogger(__name__)

LIST_ITEM = ".tobacco_list_item"
TOP_SECTION = '.tobacco_list_wrapper[data-active="1"]'
OTHER_SECTION = '.tobacco_list_wrapper[data-active="0"]'
LINE_ITEM = ".brand_lines_item"

COUNTRY_LABEL = "Страна"
FOUNDED_LABEL = "Год основания"

Content = Union[str, Document]


def _brand_summary(node: Node, top: bool = False) -> Optional[BrandSummary]:
    link = node.first(".tobacco_list_item_slug")
    href = link.attr("href") if link else None
    slug = extract_slug(href)
    if not slug:
        return None

    name = link.query("span:first-child").text() or link.query("span").text()

    return BrandSummary(
        slug=slug,
        name=name,
        name_en=name,
        country=link.query(".country").text(),
        description=node.query(".description_content span").text(),
        image_url=image_url(node, ".tobacco_list_item_image img"),
        rating=parse_rating(node.query(".list_item_rating span").text()) or 0.0,
        ratings_count=parse_int(node.query(".list_item_ratings_count span").text()) or 0,
        reviews_count=parse_int(node.query(".list_item_reviews span").text()) or 0,
        views_count=parse_views(node.query(".list_item_stats span").text()) or 0,
        url=normalize_url(href),
        top=top,
    )


def parse_brand_listing(content: Content, options: Optional[ParseOptions] = None) -> ExtractionResult[BrandSummary]:
    """Every ``.tobacco_list_item`` row on a page, regardless of section."""
    options = options or ParseOptions()
    doc = ensure_document(content)
    return collect_records(doc.query(LIST_ITEM), _brand_summary, validate_brand_summary, options, "brand")


def parse_brands_page(content: Content, options: Optional[ParseOptions] = None) -> ExtractionResult[BrandSummary]:
    """
    Parse the sectioned brands page.

    Top brands come first, then the rest. A brand that shows up in both
    sections is kept once, at its first position. Pages without sections are
    read as a flat listing.
    """
    options = options or ParseOptions()
    doc = ensure_document(content)

    sections = [(TOP_SECTION, True), (OTHER_SECTION, False)]
    if not any(doc.query(selector) for selector, _ in sections):
        return parse_brand_listing(doc, options)

    result: ExtractionResult[BrandSummary] = ExtractionResult.empty()
    for selector, top in sections:
        for section in doc.query(selector):
            section_result = collect_records(
                section.query(LIST_ITEM),
                lambda node, top=top: _brand_summary(node, top),
                validate_brand_summary,
                options,
                "brand",
            )
            result = result.merge(section_result)

    return _drop_duplicate_slugs(result)


def _drop_duplicate_slugs(result: ExtractionResult[BrandSummary]) -> ExtractionResult[BrandSummary]:
    seen = set()
    unique = []
    for brand in result.items:
        if brand.slug in seen:
            logger.debug(f"Duplicate brand {brand.slug!r} dropped")
            continue
        seen.add(brand.slug)
        unique.append(brand)

    duplicates = len(result.items) - len(unique)
    return ExtractionResult(
        items=unique,
        total_count=result.total_count,
        parsed_count=len(unique),
        skipped_count=result.skipped_count + duplicates,
    )


def parse_multiple_brand_listings(
    chunks: Iterable[Content], options: Optional[ParseOptions] = None
) -> ExtractionResult[BrandSummary]:
    """Parse each chunk on its own and concatenate the results in order."""
    result: ExtractionResult[BrandSummary] = ExtractionResult.empty()
    for chunk in chunks:
        result = result.merge(parse_brand_listing(chunk, options))
    return result


def _line(node: Node, brand_slug: str) -> Optional[Line]:
    link = node.first(".lines_item_name")
    slug = extract_slug(link.attr("href") if link else None)
    if not slug:
        return None

    return Line(
        slug=slug,
        name=link.query("h3").text() or link.text(),
        brand_slug=brand_slug,
        rating=parse_rating(node.query(".lines_item_score span").text()) or 0.0,
        strength=node.query(".lines_item_strength span").text() or None,
        status=node.query(".lines_item_status span").text(),
        flavors_count=parse_flavors_count(node.query(".lines_item_tobaccos span").text()) or 0,
        description=node.query(".lines_item_description span").text() or None,
    )


def parse_lines(content: Content, brand_slug: str, options: Optional[ParseOptions] = None) -> ExtractionResult[Line]:
    options = options or ParseOptions()
    doc = ensure_document(content)
    return collect_records(doc.query(LINE_ITEM), lambda node: _line(node, brand_slug), validate_line, options, "line")


def parse_brand_detail(content: Content, slug: str, options: Optional[ParseOptions] = None) -> Optional[Brand]:
    """
    Parse a brand page (``/tobaccos/{slug}``).

    Returns None when the page has no brand title or the assembled record
    fails validation.
    """
    options = options or ParseOptions()
    doc = ensure_document(content)

    name = doc.query(".object_card_title h1").text()
    if not name:
        logger.warning(f"No brand title found on page for {slug!r}")
        return None

    rating, ratings_count, reviews_count, views_count = score_stats(doc)

    brand = Brand(
        slug=slug,
        name=name,
        name_en=doc.query(".object_card_title span").text() or name,
        description=doc.query(".object_card_discr span").text(),
        country=info_value(doc, COUNTRY_LABEL),
        website=doc.query('.object_info_item a[href^="http"]').attr("href"),
        founded_year=parse_year(info_value(doc, FOUNDED_LABEL)),
        status=status_text(doc),
        image_url=image_url(doc, ".object_image img"),
        rating=rating,
        ratings_count=ratings_count,
        reviews_count=reviews_count,
        views_count=views_count,
        lines=parse_lines(doc, slug, options).items,
        htreviews_id=parse_int(doc.query(".object_wrapper[data-id]").attr("data-id")),
        rating_distribution=rating_distribution(doc),
        smoke_again_percentage=smoke_again_percentage(doc),
    )
    return accept_detail(brand, validate_brand, options, "brand")
