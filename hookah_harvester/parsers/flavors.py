"""
Flavor parsers: listing rows, detail pages, tags and flavor links.
"""

import json
import logging
from typing import Iterable, Optional, Union

from hookah_harvester.models import ExtractionResult, Flavor, FlavorSummary, FlavorTag, ParseOptions
from hookah_harvester.normalize.processor import normalize_url
from hookah_harvester.parsers.common import (
    accept_detail,
    collect_records,
    image_url,
    info_link,
    info_value,
    rating_distribution,
    score_stats,
    smoke_again_percentage,
    status_text,
)
from hookah_harvester.parsers.document import Document, Node, ensure_document
from hookah_harvester.parsers.text import (
    brand_slug_of,
    extract_slug,
    parse_date,
    parse_int,
    parse_tag_id,
    slug_to_path,
)
from hookah_harvester.parsers.validation import validate_flavor, validate_flavor_summary

logger = logging.getLogger(__name__)

LIST_ITEM = ".tobacco_list_item"
FLAVOR_LINK = ".tobacco_list_item_slug"
TAG_GROUP = ".tags_group"

BRAND_LABEL = "Бренд"
LINE_LABEL = "Линейка"
COUNTRY_LABEL = "Страна"
OFFICIAL_STRENGTH_LABEL = "Крепость официальная"
USER_STRENGTH_LABEL = "Крепость по оценкам"
DATE_ADDED_LABEL = "Добавлен на сайт"
ADDED_BY_LABEL = "Добавил"

Content = Union[str, Document]


def _ld_json_description(node: Node) -> Optional[str]:
    for script in node.query('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.text())
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(data, dict) and isinstance(data.get("description"), str):
            return data["description"]
    return None


def _flavor_summary(node: Node, options: ParseOptions) -> Optional[FlavorSummary]:
    link = node.first(f".tobacco_list_item_name a{FLAVOR_LINK}") or node.first(FLAVOR_LINK)
    href = link.attr("href") if link else None
    slug = extract_slug(href)
    if not slug:
        return None

    names = link.query("span")
    brand_slug = (
        options.brand_slug
        or brand_slug_of(extract_slug(node.query(".tobacco_list_item_brand_slug a").attr("href")))
        or brand_slug_of(slug)
    )
    description = _ld_json_description(node) or node.query(".last_reviews_item_content span").text()

    return FlavorSummary(
        slug=slug,
        name=names[0].text() if names else link.text(),
        name_alt=names[1].text() or None if len(names) > 1 else None,
        brand_slug=brand_slug,
        description=description,
        image_url=image_url(node, ".tobacco_list_item_image img"),
        line_name=node.query(".tobacco_list_item_line_slug a span").text() or None,
        status=node.query(".tobacco_list_item_status span").text() or None,
        url=normalize_url(href),
    )


def parse_flavor_listing(content: Content, options: Optional[ParseOptions] = None) -> ExtractionResult[FlavorSummary]:
    """Every flavor row on a brand page or one of its ``?offset=N`` pages."""
    options = options or ParseOptions()
    doc = ensure_document(content)
    return collect_records(
        doc.query(LIST_ITEM),
        lambda node: _flavor_summary(node, options),
        validate_flavor_summary,
        options,
        "flavor",
    )


def parse_multiple_flavor_listings(
    chunks: Iterable[Content], options: Optional[ParseOptions] = None
) -> ExtractionResult[FlavorSummary]:
    result: ExtractionResult[FlavorSummary] = ExtractionResult.empty()
    for chunk in chunks:
        result = result.merge(parse_flavor_listing(chunk, options))
    return result


def extract_flavor_urls_from_page(content: Content) -> list[str]:
    """
    Flavor paths (``/tobaccos/brand/line/flavor``) linked from a listing page.

    Relative and absolute links map to the same path; repeats are dropped.
    """
    doc = ensure_document(content)
    urls = []
    seen = set()
    for link in doc.query(FLAVOR_LINK):
        slug = extract_slug(link.attr("href"))
        if not slug:
            continue
        path = slug_to_path(slug)
        if path not in seen:
            seen.add(path)
            urls.append(path)
    return urls


def extract_tags(content: Content) -> list[str]:
    """Tag names in page order, each once."""
    doc = ensure_document(content)
    tags = []
    for name in doc.query(".group_items .object_card_tag span:last-child").texts():
        if name not in tags:
            tags.append(name)
    return tags


def _group_items(group: Node) -> Optional[Node]:
    title = group.first(".group_title")
    if title is not None:
        sibling = title.next_element()
        if sibling is not None and "group_items" in (sibling.attr("class") or "").split():
            return sibling
    return group.first(".group_items")


def extract_detailed_tags(content: Content) -> list[FlavorTag]:
    """
    Tags with their group name and numeric id.

    The id comes from the ``t`` query parameter of the tag link and is 0 when
    the link carries none.
    """
    doc = ensure_document(content)
    tags: list[FlavorTag] = []
    seen = set()

    for group in doc.query(TAG_GROUP):
        group_name = group.query(".group_title span").text()
        items = _group_items(group)
        if items is None:
            continue
        for tag in items.query(".object_card_tag"):
            name = tag.query("span:last-child").text() or tag.text()
            if not name or (name, group_name) in seen:
                continue
            seen.add((name, group_name))
            href = tag.attr("href") or tag.query("a").attr("href")
            tags.append(FlavorTag(id=parse_tag_id(href) or 0, name=name, group=group_name))

    return tags


def parse_flavor_detail(content: Content, slug: str, options: Optional[ParseOptions] = None) -> Optional[Flavor]:
    """
    Parse a flavor page (``/tobaccos/{brand}/{line}/{flavor}``).

    Brand and line are read from the labelled info links; the brand falls
    back to the first segment of ``slug``.
    """
    options = options or ParseOptions()
    doc = ensure_document(content)

    name = doc.query(".object_card_title h1").text()
    if not name:
        logger.warning(f"No flavor title found on page for {slug!r}")
        return None

    brand_name, brand_href = info_link(doc, BRAND_LABEL)
    line_name, line_href = info_link(doc, LINE_LABEL)
    added_by, _ = info_link(doc, ADDED_BY_LABEL)
    rating, ratings_count, reviews_count, views_count = score_stats(doc)

    flavor = Flavor(
        slug=slug,
        name=name,
        name_alt=doc.query(".object_card_title span").text() or None,
        brand_slug=brand_slug_of(extract_slug(brand_href)) or options.brand_slug or brand_slug_of(slug),
        brand_name=brand_name,
        htreviews_id=parse_int(doc.query(".object_wrapper[data-id]").attr("data-id")),
        description=doc.query(".object_card_discr span").text(),
        line_slug=extract_slug(line_href),
        line_name=line_name or None,
        country=info_value(doc, COUNTRY_LABEL),
        official_strength=info_value(doc, OFFICIAL_STRENGTH_LABEL) or None,
        user_strength=info_value(doc, USER_STRENGTH_LABEL) or None,
        status=status_text(doc),
        image_url=image_url(doc, ".object_image img"),
        tags=extract_tags(doc),
        detailed_tags=extract_detailed_tags(doc),
        rating=rating,
        ratings_count=ratings_count,
        reviews_count=reviews_count,
        views_count=views_count,
        rating_distribution=rating_distribution(doc),
        smoke_again_percentage=smoke_again_percentage(doc) or 0.0,
        date_added=parse_date(info_value(doc, DATE_ADDED_LABEL)),
        added_by=added_by or info_value(doc, ADDED_BY_LABEL),
    )
    return accept_detail(flavor, validate_flavor, options, "flavor")
