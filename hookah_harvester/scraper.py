"""
Public scraping operations over htreviews.org.

Usage:
    async with HtreviewsScraper() as scraper:
        brands = await scraper.scrape_brands_list()
        brand = await scraper.scrape_brand_details("sarma", include_flavor_urls=True)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from hookah_harvester.config import settings
from hookah_harvester.ingest.discovery import DiscoveryOutcome, DiscoveryStrategy, FlavorUrlDiscovery
from hookah_harvester.ingest.http_client import FetchClient, FetchError, HttpError, RetriesExhaustedError
from hookah_harvester.ingest.pagination import CancellationFlag, PaginatedCollector, PaginationError
from hookah_harvester.logging_config import get_logger
from hookah_harvester.models import Brand, BrandSummary, ExtractionResult, Flavor, FlavorSummary, ParseOptions
from hookah_harvester.parsers.brands import parse_brand_detail, parse_brands_page
from hookah_harvester.parsers.document import Document
from hookah_harvester.parsers.flavors import parse_flavor_detail, parse_flavor_listing
from hookah_harvester.parsers.text import extract_slug, slug_to_path

logger = logging.getLogger(__name__)

BRANDS_PATH = "/tobaccos/brands"


def _is_absent(error: FetchError) -> bool:
    """Source-side 4xx or an exhausted retry budget: the record is treated as missing."""
    if isinstance(error, RetriesExhaustedError):
        return True
    return isinstance(error, HttpError) and not error.retryable


@dataclass
class BatchResult:
    """Outcome of scraping several brands; one brand failing never affects the others."""

    brands: list[Brand] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.brands) + len(self.missing) + len(self.failures)


class HtreviewsScraper:
    """Facade tying the fetch client, parsers, pagination and discovery together."""

    def __init__(
        self,
        client: Optional[FetchClient] = None,
        discovery: Optional[FlavorUrlDiscovery] = None,
        page_delay: Optional[float] = None,
    ):
        self.client = client or FetchClient()
        self.discovery = discovery or FlavorUrlDiscovery(self.client)
        self.page_delay = page_delay

    async def __aenter__(self) -> "HtreviewsScraper":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    def reset_rate_limiter(self) -> None:
        self.client.reset_rate_limiter()

    async def fetch_html(self, path: str, params: Optional[dict[str, Any]] = None) -> str:
        response = await self.client.fetch(path, params=params)
        return response.body

    async def fetch_and_parse(self, path: str, params: Optional[dict[str, Any]] = None) -> Document:
        return Document(await self.fetch_html(path, params))

    async def scrape_brands_list(self) -> list[BrandSummary]:
        """All brands from the brands page, top brands first."""
        try:
            doc = await self.fetch_and_parse(BRANDS_PATH)
        except FetchError as e:
            if _is_absent(e):
                logger.error(f"Brands page unavailable: {e}")
                return []
            raise

        result = parse_brands_page(doc, ParseOptions(include_incomplete=True))
        logger.info(f"Scraped {result.parsed_count} brands ({result.skipped_count} skipped)")
        return result.items

    async def scrape_brand_details(self, slug: str, include_flavor_urls: bool = False) -> Optional[Brand]:
        """
        Scrape one brand page.

        Args:
            slug: Brand slug, e.g. "sarma"
            include_flavor_urls: Also resolve the brand's flavor URLs

        Returns:
            Brand, or None when the page is missing or unparsable

        Raises:
            PaginationError: Flavor URL pagination failed part way
        """
        try:
            doc = await self.fetch_and_parse(slug_to_path(slug))
        except FetchError as e:
            if _is_absent(e):
                logger.warning(f"Brand {slug} unavailable: {e}")
                return None
            raise

        brand = parse_brand_detail(doc, slug, ParseOptions(include_incomplete=True))
        if brand is None:
            return None

        if include_flavor_urls:
            outcome = await self.discovery.discover(slug, doc)
            if outcome.succeeded:
                brand.flavor_urls = outcome.urls
            else:
                logger.warning(
                    f"Flavor URL discovery for {slug} failed after {len(outcome.urls)} URLs, "
                    f"leaving them out: {outcome.error}"
                )

        return brand

    async def discover_flavor_urls(self, slug: str) -> DiscoveryOutcome:
        try:
            doc = await self.fetch_and_parse(slug_to_path(slug))
        except FetchError as e:
            if _is_absent(e):
                logger.warning(f"Brand {slug} unavailable for flavor discovery: {e}")
                return DiscoveryOutcome(strategy=DiscoveryStrategy.HTML, requests_count=1, error=str(e))
            raise
        outcome = await self.discovery.discover(slug, doc)
        outcome.requests_count += 1
        return outcome

    async def extract_flavor_urls(self, slug: str) -> list[str]:
        """
        Flavor paths of a brand (``/tobaccos/brand/line/flavor``).

        Empty when discovery failed; a partial list is never returned.
        """
        outcome = await self.discover_flavor_urls(slug)
        if not outcome.succeeded:
            logger.warning(f"Flavor URL discovery for {slug} failed: {outcome.error}")
            return []
        return outcome.urls

    async def scrape_flavor_details(self, flavor_slug: str) -> Optional[Flavor]:
        """
        Scrape one flavor page.

        ``flavor_slug`` may be a slug path ("sarma/klassicheskaya/zima"), a
        catalogue path or a full URL.
        """
        slug = extract_slug(flavor_slug)
        if not slug:
            logger.warning(f"Not a flavor slug: {flavor_slug!r}")
            return None

        try:
            doc = await self.fetch_and_parse(slug_to_path(slug))
        except FetchError as e:
            if _is_absent(e):
                logger.warning(f"Flavor {slug} unavailable: {e}")
                return None
            raise

        return parse_flavor_detail(doc, slug, ParseOptions(include_incomplete=True))

    async def scrape_flavor_listing(
        self,
        brand_slug: str,
        max_items: int = 0,
        cancel: Optional[CancellationFlag] = None,
    ) -> ExtractionResult[FlavorSummary]:
        """
        Every flavor row of a brand, following ``?offset=N&limit=P`` pages.

        Raises:
            PaginationError: A page failed; nothing partial is returned
        """
        options = ParseOptions(include_incomplete=True, brand_slug=brand_slug)
        collector = PaginatedCollector(
            self.client,
            slug_to_path(brand_slug),
            lambda doc: parse_flavor_listing(doc, options),
            max_items=max_items,
            page_delay=self.page_delay,
            cancel=cancel,
        )
        result = await collector.collect()
        return ExtractionResult(
            items=result.items,
            total_count=result.observed_count,
            parsed_count=len(result.items),
            skipped_count=result.skipped_count,
        )

    async def scrape_brands_batch(
        self,
        slugs: list[str],
        concurrency: Optional[int] = None,
        include_flavor_urls: bool = False,
    ) -> BatchResult:
        """
        Scrape several brands with at most ``concurrency`` in flight.

        Brands come back in input order; a brand that raises is recorded in
        ``failures`` and the rest carry on.
        """
        semaphore = asyncio.Semaphore(concurrency or settings.concurrent_requests)

        async def scrape_one(slug: str):
            log = get_logger(__name__, brand=slug)
            async with semaphore:
                try:
                    return slug, await self.scrape_brand_details(slug, include_flavor_urls), None
                except (FetchError, PaginationError) as e:
                    log.error(f"Brand scrape failed: {e}")
                    return slug, None, str(e)

        result = BatchResult()
        for slug, brand, error in await asyncio.gather(*(scrape_one(s) for s in slugs)):
            if error is not None:
                result.failures[slug] = error
            elif brand is None:
                result.missing.append(slug)
            else:
                result.brands.append(brand)

        logger.info(
            f"Batch scraped {len(result.brands)}/{len(slugs)} brands "
            f"({len(result.missing)} missing, {len(result.failures)} failed)"
        )
        return result
