"""
Offset pagination over infinite-scroll listing pages.

The catalogue loads further rows with ``?offset=N&limit=P`` requests; each
response carries the next chunk of ``.tobacco_list_item`` markup and usually
a metadata element:

    <div class="tobacco_list_items" data-count="53" data-offset="20" data-target="20">
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, Sequence, TypeVar, Union

from hookah_harvester import metrics
from hookah_harvester.config import ConfigurationError, settings
from hookah_harvester.ingest.http_client import FetchClient, FetchError
from hookah_harvester.models import ExtractionResult
from hookah_harvester.parsers.document import Document, ensure_document
from hookah_harvester.parsers.text import parse_int

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_SELECTOR = ".tobacco_list_items[data-count]"
DEFAULT_ITEM_SELECTOR = ".tobacco_list_item"

Extractor = Callable[[Document], Union[ExtractionResult[T], Sequence[T]]]


class StopReason(str, Enum):
    MAX_ITEMS = "max_items"
    EMPTY_PAGE = "empty_page"
    TOTAL_REACHED = "total_reached"
    SHORT_PAGE = "short_page"
    MAX_PAGES = "max_pages"
    CANCELLED = "cancelled"


class PaginationError(RuntimeError):
    """A page fetch failed mid-collection; nothing collected so far is returned."""

    def __init__(self, offset: int, cause: BaseException):
        super().__init__(f"Failed to fetch page at offset {offset}: {cause}")
        self.offset = offset
        self.cause = cause


class CancellationFlag:
    """Checked between page fetches; an in-flight request is never interrupted."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


@dataclass
class PageMetadata:
    total_count: int
    offset: int = 0
    limit: int = 0


def extract_page_metadata(content: Union[str, Document]) -> Optional[PageMetadata]:
    """Total/offset/page-size numbers from the listing container, if present."""
    doc = ensure_document(content)
    node = doc.first(METADATA_SELECTOR)
    if node is None:
        return None
    total = parse_int(node.attr("data-count"))
    if total is None:
        return None
    return PageMetadata(
        total_count=total,
        offset=parse_int(node.attr("data-offset")) or 0,
        limit=parse_int(node.attr("data-target")) or 0,
    )


@dataclass
class CollectionResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    requests_count: int = 0
    pages_count: int = 0
    stop_reason: Optional[StopReason] = None
    total_count: Optional[int] = None
    observed_count: int = 0
    skipped_count: int = 0
    chunks: list[str] = field(default_factory=list)


def _unpack(extracted: Any) -> tuple[list, int, int]:
    """(items, observed, skipped) from an extractor's return value."""
    if isinstance(extracted, ExtractionResult):
        return list(extracted.items), extracted.total_count, extracted.skipped_count
    items = list(extracted or [])
    return items, len(items), 0


class PaginatedCollector(Generic[T]):
    """
    Fetch consecutive offsets of one listing and aggregate its items.

    After every page the loop stops, in this order, when: ``max_items`` is
    reached; the page held no items; the running count reaches the total
    announced by the page metadata (or ``total_hint``); the page was shorter
    than ``page_size`` (only with ``stop_on_short_page``). ``max_pages`` and
    the cancellation flag are checked before each fetch.
    """

    def __init__(
        self,
        client: FetchClient,
        path: str,
        extract: Extractor,
        page_size: Optional[int] = None,
        max_items: int = 0,
        page_delay: Optional[float] = None,
        max_pages: Optional[int] = None,
        stop_on_short_page: bool = True,
        limit_param: Optional[str] = "limit",
        cancel: Optional[CancellationFlag] = None,
        keep_chunks: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.path = path
        self.extract = extract
        self.page_size = page_size if page_size is not None else settings.page_size
        if self.page_size < 1:
            raise ConfigurationError(f"page_size must be at least 1, got {self.page_size}")
        if max_items < 0:
            raise ConfigurationError(f"max_items must not be negative, got {max_items}")
        self.max_items = max_items
        self.page_delay = page_delay if page_delay is not None else settings.scroll_delay_seconds
        self.max_pages = max_pages
        self.stop_on_short_page = stop_on_short_page
        self.limit_param = limit_param
        self.cancel = cancel
        self.keep_chunks = keep_chunks
        self._sleep = sleep

    def params_for(self, offset: int) -> dict[str, int]:
        params = {"offset": offset}
        if self.limit_param:
            params[self.limit_param] = self.page_size
        return params

    async def fetch_page(self, offset: int) -> Document:
        try:
            response = await self.client.fetch(self.path, params=self.params_for(offset))
        except FetchError as e:
            logger.error(f"Page fetch failed for {self.path} at offset {offset}: {e}")
            raise PaginationError(offset, e) from e
        metrics.pages_fetched_total.inc()
        return Document(response.body)

    async def collect(
        self,
        first_page: Union[str, Document, None] = None,
        total_hint: Optional[int] = None,
    ) -> CollectionResult[T]:
        """
        Run the loop to completion.

        Args:
            first_page: Already fetched offset-0 page; it is parsed without a request
            total_hint: Known collection size, used when pages carry no metadata

        Raises:
            PaginationError: A page fetch failed
        """
        result: CollectionResult[T] = CollectionResult(total_count=total_hint)
        offset = 0

        while True:
            if self.cancel is not None and self.cancel.is_cancelled:
                result.stop_reason = StopReason.CANCELLED
                break
            if self.max_pages is not None and result.pages_count >= self.max_pages:
                result.stop_reason = StopReason.MAX_PAGES
                break

            if result.pages_count == 0 and first_page is not None:
                doc = ensure_document(first_page)
            else:
                if result.pages_count > 0 and self.page_delay > 0:
                    await self._sleep(self.page_delay)
                doc = await self.fetch_page(offset)
                result.requests_count += 1
            result.pages_count += 1

            items, observed, skipped = _unpack(self.extract(doc))
            metadata = extract_page_metadata(doc)
            if metadata is not None:
                result.total_count = metadata.total_count
            if self.keep_chunks:
                result.chunks.append(doc.html)

            if self.max_items and len(result.items) + len(items) > self.max_items:
                items = items[: self.max_items - len(result.items)]
            result.items.extend(items)
            result.observed_count += observed
            result.skipped_count += skipped

            logger.debug(
                f"{self.path}: offset {offset} gave {observed} items "
                f"(running {result.observed_count}, total {result.total_count})"
            )

            reason = self._stop_reason(result, observed)
            if reason is not None:
                result.stop_reason = reason
                break
            offset += self.page_size

        logger.info(
            f"Collected {len(result.items)} items from {self.path} in {result.requests_count} "
            f"requests ({result.stop_reason.value})"
        )
        return result

    def _stop_reason(self, result: CollectionResult[T], observed: int) -> Optional[StopReason]:
        if self.max_items and len(result.items) >= self.max_items:
            return StopReason.MAX_ITEMS
        if observed == 0:
            return StopReason.EMPTY_PAGE
        if result.total_count is not None and result.observed_count >= result.total_count:
            return StopReason.TOTAL_REACHED
        if self.stop_on_short_page and observed < self.page_size:
            return StopReason.SHORT_PAGE
        return None


def merge_html_chunks(chunks: Iterable[Union[str, Document]], item_selector: str = DEFAULT_ITEM_SELECTOR) -> str:
    """
    Combine the item markup of several pages into one listing document.

    Items are cut out of each chunk separately, so an item never straddles
    two chunks.
    """
    parts = []
    for chunk in chunks:
        doc = ensure_document(chunk)
        parts.extend(node.html for node in doc.query(item_selector))
    return '<div class="tobacco_list_items">' + "".join(parts) + "</div>"
