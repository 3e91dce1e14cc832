"""Field extractors shared by the brand and flavor parsers."""

import logging
import re
from typing import Callable, Iterable, Optional, TypeVar

from hookah_harvester import metrics
from hookah_harvester.models import ExtractionResult, ParseOptions, RatingDistribution
from hookah_harvester.normalize.processor import normalize_record, normalize_url
from hookah_harvester.parsers.document import Node
from hookah_harvester.parsers.text import parse_float, parse_int, parse_percentage, parse_views
from hookah_harvester.parsers.validation import ValidationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

INFO_ITEM = ".object_info_item"
STATS_ROW = '.score_graphic [data-stats="1"]'
RATING_DISTRIBUTION_ITEMS = ".score_meter .score_meter_item"
SMOKE_AGAIN = ".again_meter"

_DISTRIBUTION_TEXT_RE = re.compile(r"^([1-5])[:\s-]+(\d+)")


def image_url(scope: Node, selector: str, base_url: Optional[str] = None) -> Optional[str]:
    """Image address, preferring lazy-load ``data-src`` over ``src`` and ``srcset``."""
    img = scope.first(selector)
    if img is None:
        return None
    url = img.attr("data-src") or img.attr("src")
    if not url:
        srcset = img.attr("srcset")
        if srcset and srcset.split():
            url = srcset.split()[0]
    return normalize_url(url, base_url) if url else None


def _label_of(item: Node) -> str:
    return item.query("span").text().rstrip(":").strip().lower()


def find_info_item(doc: Node, label: str) -> Optional[Node]:
    """The ``.object_info_item`` whose label span reads ``label``."""
    wanted = label.lower()
    items = doc.query(INFO_ITEM)
    for item in items:
        if _label_of(item) == wanted:
            return item
    for item in items:
        if wanted in item.text().lower():
            return item
    return None


def info_value(doc: Node, label: str) -> str:
    """Value text of a labelled info item ("Страна" -> "Россия")."""
    item = find_info_item(doc, label)
    if item is None:
        return ""
    value = item.query("div").text()
    if value:
        return value
    spans = item.query("span")
    if len(spans) > 1:
        return spans[len(spans) - 1].text()
    link = item.first("a")
    return link.text() if link else ""


def info_link(doc: Node, label: str) -> tuple[str, Optional[str]]:
    """Text and href of the link inside a labelled info item."""
    item = find_info_item(doc, label)
    link = item.first("a") if item else None
    if link is None:
        return "", None
    return link.text(), link.attr("href")


def status_text(doc: Node) -> str:
    item = doc.first(f'{INFO_ITEM}[data-id="1"]')
    if item is None:
        return ""
    spans = item.query("span")
    return spans[len(spans) - 1].text() if spans else ""


def score_stats(doc: Node) -> tuple[float, int, int, int]:
    """Rating, ratings count, reviews count and views count from the score block."""
    rating = parse_float(doc.query(".score_graphic div[data-rating]").attr("data-rating")) or 0.0
    ratings_count = parse_int(doc.query(f"{STATS_ROW} > div:nth-child(1) span").text()) or 0
    reviews_count = parse_int(doc.query(f"{STATS_ROW} > div:nth-child(2) span").text()) or 0
    views_count = parse_views(doc.query(f"{STATS_ROW} > div:nth-child(3) span").text()) or 0
    return rating, ratings_count, reviews_count, views_count


def _distribution_count(count_node: Node) -> Optional[int]:
    count = parse_int(count_node.attr("data-score-count"))
    if count is not None:
        return count
    spans = count_node.query("span")
    if len(spans) >= 2:
        return parse_int(spans[1].text())
    if len(spans) == 1:
        return parse_int(spans[0].text())
    return parse_int(count_node.text())


def rating_distribution(doc: Node, selector: str = RATING_DISTRIBUTION_ITEMS) -> RatingDistribution:
    """
    Per-score counts from the score meter.

    Every score starts at 0 and is only overwritten by an item that names it,
    either through ``data-score``/``data-score-count`` or as "5: 123" text.
    """
    distribution = RatingDistribution()
    for item in doc.query(selector):
        score_node = item if item.attr("data-score") is not None else item.first("[data-score]")
        count_node = item if item.attr("data-score-count") is not None else item.first("[data-score-count]")

        if score_node is not None and count_node is not None:
            score = parse_int(score_node.attr("data-score"))
            count = _distribution_count(count_node)
            if score is not None and count is not None:
                distribution.set(score, count)
            continue

        match = _DISTRIBUTION_TEXT_RE.match(item.text())
        if match:
            distribution.set(int(match.group(1)), int(match.group(2)))
    return distribution


def smoke_again_percentage(doc: Node, selector: str = SMOKE_AGAIN) -> Optional[float]:
    return parse_percentage(doc.query(selector).text())


def collect_records(
    nodes: Iterable[Node],
    build: Callable[[Node], Optional[T]],
    validate: Callable[[T], ValidationResult],
    options: ParseOptions,
    kind: str,
) -> ExtractionResult[T]:
    """
    Build, normalize and validate one record per node.

    A node that fails to build or validate is counted as skipped; its
    siblings are still parsed.
    """
    items: list[T] = []
    skipped = 0
    total = 0

    for node in nodes:
        total += 1
        try:
            record = build(node)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Failed to build {kind} record: {e}")
            record = None

        if record is None:
            skipped += 1
            continue

        normalize_record(record)

        if not options.skip_validation:
            result = validate(record)
            if not result.accepts(options.include_incomplete):
                skipped += 1
                logger.debug(f"Skipping {kind} {getattr(record, 'slug', '?')!r}: {result.describe()}")
                continue

        items.append(record)

    if skipped:
        metrics.records_skipped_total.labels(kind=kind).inc(skipped)
        logger.info(f"Parsed {len(items)} {kind} records, skipped {skipped}")

    return ExtractionResult(items=items, total_count=total, parsed_count=len(items), skipped_count=skipped)


def accept_detail(record: Optional[T], validate: Callable[[T], ValidationResult], options: ParseOptions, kind: str) -> Optional[T]:
    """Normalize and validate a single detail record; None when rejected."""
    if record is None:
        return None
    normalize_record(record)
    if options.skip_validation:
        return record
    result = validate(record)
    if not result.accepts(options.include_incomplete):
        metrics.records_skipped_total.labels(kind=kind).inc()
        logger.warning(f"Rejected {kind} {getattr(record, 'slug', '?')!r}: {result.describe()}")
        return None
    return record

