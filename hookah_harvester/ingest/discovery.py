"""
Flavor URL discovery for a brand: JSON API first, HTML pagination as fallback.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from hookah_harvester import metrics
from hookah_harvester.config import settings
from hookah_harvester.ingest.api_extractor import ApiAttempt, ApiFlavorExtractor
from hookah_harvester.ingest.brand_id import extract_brand_id
from hookah_harvester.ingest.flavor_urls import dedupe_urls
from hookah_harvester.ingest.http_client import FetchClient
from hookah_harvester.ingest.pagination import PaginatedCollector, extract_page_metadata
from hookah_harvester.parsers.document import Document, ensure_document
from hookah_harvester.parsers.flavors import extract_flavor_urls_from_page
from hookah_harvester.parsers.text import slug_to_path

logger = logging.getLogger(__name__)

# Rows per ?offset=N page of a brand listing
HTML_PAGE_SIZE = 20

EMPTY_API_RESPONSE = "empty API response"


class DiscoveryStrategy(str, Enum):
    API = "api"
    HTML = "html"


class NextStep(str, Enum):
    ACCEPT = "accept"
    FALLBACK = "fallback"
    FAIL = "fail"


def decide_next_step(attempt: ApiAttempt, enable_fallback: bool) -> NextStep:
    """What to do with an API attempt: keep it, fall back to HTML, or give up."""
    if attempt.succeeded:
        return NextStep.ACCEPT
    return NextStep.FALLBACK if enable_fallback else NextStep.FAIL


@dataclass
class DiscoveryOutcome:
    urls: list[str] = field(default_factory=list)
    strategy: DiscoveryStrategy = DiscoveryStrategy.HTML
    used_fallback: bool = False
    requests_count: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def page_hint(content: Union[str, Document]) -> Optional[int]:
    """Flavor count announced by the brand page's listing container."""
    metadata = extract_page_metadata(content)
    return metadata.total_count if metadata else None


class FlavorUrlDiscovery:
    """
    Resolve every flavor URL of a brand.

    A brand page without a numeric id goes straight to HTML pagination.
    Otherwise the API is tried; its failure (including an empty result while
    the page announces flavors) falls back to HTML when ``enable_fallback``
    is set and fails the brand when it is not.
    """

    def __init__(
        self,
        client: FetchClient,
        api_extractor: Optional[ApiFlavorExtractor] = None,
        enable_api: Optional[bool] = None,
        enable_fallback: Optional[bool] = None,
        page_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.api_extractor = api_extractor or ApiFlavorExtractor(client, sleep=sleep)
        self.enable_api = settings.enable_api_extraction if enable_api is None else enable_api
        self.enable_fallback = settings.enable_api_fallback if enable_fallback is None else enable_fallback
        self.page_delay = page_delay if page_delay is not None else settings.fallback_page_delay_seconds
        self._sleep = sleep

    async def discover(self, brand_slug: str, brand_page: Union[str, Document, None] = None) -> DiscoveryOutcome:
        """
        Args:
            brand_slug: Brand whose flavors to list
            brand_page: Already fetched brand page; fetched here when omitted

        Raises:
            FetchError: The brand page itself could not be fetched
            PaginationError: An HTML fallback page failed
        """
        requests = 0
        if brand_page is None:
            response = await self.client.fetch(slug_to_path(brand_slug))
            brand_page = response.body
            requests += 1

        doc = ensure_document(brand_page)
        hint = page_hint(doc)
        used_fallback = False

        if self.enable_api:
            brand_id = extract_brand_id(doc)
            if brand_id is None:
                logger.info(f"No brand id on page for {brand_slug}, using HTML pagination")
                used_fallback = True
            else:
                attempt = await self.api_extractor.extract(brand_id, brand_slug)
                requests += attempt.requests_count
                if attempt.succeeded and not attempt.urls and hint:
                    attempt.reason = EMPTY_API_RESPONSE

                step = decide_next_step(attempt, self.enable_fallback)
                if step is NextStep.ACCEPT:
                    return self._finish(brand_slug, DiscoveryOutcome(attempt.urls, DiscoveryStrategy.API, False, requests))
                if step is NextStep.FAIL:
                    logger.error(f"API discovery failed for {brand_slug} and fallback is disabled: {attempt.reason}")
                    return self._finish(
                        brand_slug,
                        DiscoveryOutcome(attempt.urls, DiscoveryStrategy.API, False, requests, attempt.reason),
                    )
                logger.warning(f"API discovery failed for {brand_slug} ({attempt.reason}), falling back to HTML")
                used_fallback = True

        urls, html_requests = await self.discover_from_html(brand_slug, doc, hint)
        outcome = DiscoveryOutcome(urls, DiscoveryStrategy.HTML, used_fallback, requests + html_requests)
        return self._finish(brand_slug, outcome)

    async def discover_from_html(
        self,
        brand_slug: str,
        brand_page: Union[str, Document],
        hint: Optional[int] = None,
    ) -> tuple[list[str], int]:
        """
        Flavor URLs from the brand page plus its ``?offset=N`` pages.

        The brand page counts as the first of at most ``ceil(hint / 20)``
        pages; without a hint only the brand page is read.
        """
        max_pages = math.ceil(hint / HTML_PAGE_SIZE) if hint else 1
        collector = PaginatedCollector(
            self.client,
            slug_to_path(brand_slug),
            extract_flavor_urls_from_page,
            page_size=HTML_PAGE_SIZE,
            page_delay=self.page_delay,
            max_pages=max_pages,
            stop_on_short_page=False,
            limit_param=None,
            sleep=self._sleep,
        )
        result = await collector.collect(first_page=brand_page, total_hint=hint)
        return dedupe_urls(result.items), result.requests_count

    def _finish(self, brand_slug: str, outcome: DiscoveryOutcome) -> DiscoveryOutcome:
        metrics.discovery_runs_total.labels(
            strategy=outcome.strategy.value,
            outcome="ok" if outcome.succeeded else "failed",
        ).inc()
        logger.info(
            f"Discovered {len(outcome.urls)} flavor URLs for {brand_slug} via {outcome.strategy.value} "
            f"({outcome.requests_count} requests, fallback={outcome.used_fallback})"
        )
        return outcome
