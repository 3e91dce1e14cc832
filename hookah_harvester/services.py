"""Read-through catalogue service: cache first, scrape on miss."""

import asyncio
import logging
from typing import Any, Optional, Protocol

from hookah_harvester.cache import InMemoryCache, brand_flavors_key
from hookah_harvester.config import settings
from hookah_harvester.ingest.http_client import FetchError
from hookah_harvester.ingest.pagination import PaginationError
from hookah_harvester.models import Brand, BrandSummary, Flavor
from hookah_harvester.scraper import HtreviewsScraper

logger = logging.getLogger(__name__)

SCRAPE_ERRORS = (FetchError, PaginationError)


class EntityStore(Protocol):
    """Persistence the service writes through to."""

    def save(self, entity: Any) -> None:
        ...

    def get_by_slug(self, slug: str) -> Optional[Any]:
        ...


class InMemoryStore:
    """Dict-backed EntityStore keyed by ``entity.slug``."""

    def __init__(self):
        self._items: dict[str, Any] = {}

    def save(self, entity: Any) -> None:
        self._items[entity.slug] = entity

    def get_by_slug(self, slug: str) -> Optional[Any]:
        return self._items.get(slug)

    def all(self) -> list[Any]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)


class CatalogService:
    """
    Serves brands and flavors from the cache, scraping on a miss.

    When a scrape fails, whatever is still cached (or stored) for the key is
    returned instead; with nothing to fall back on the error propagates.
    """

    def __init__(
        self,
        scraper: HtreviewsScraper,
        cache: InMemoryCache,
        brand_store: Optional[EntityStore] = None,
        flavor_store: Optional[EntityStore] = None,
        concurrency: Optional[int] = None,
    ):
        self.scraper = scraper
        self.cache = cache
        self.brand_store = brand_store
        self.flavor_store = flavor_store
        self.concurrency = concurrency or settings.concurrent_requests

    async def get_all_brands(self, force_refresh: bool = False) -> list[BrandSummary]:
        cached = self.cache.get_brands()
        if cached is not None and not force_refresh:
            return cached

        try:
            brands = await self.scraper.scrape_brands_list()
        except SCRAPE_ERRORS as e:
            if cached is not None:
                logger.warning(f"Brand list scrape failed, serving cached list: {e}")
                return cached
            raise

        if not brands and cached:
            logger.warning("Brand list scrape returned nothing, serving cached list")
            return cached

        self.cache.set_brands(brands)
        return brands

    async def get_brand(self, slug: str, force_refresh: bool = False) -> Optional[Brand]:
        cached = self.cache.get_brand(slug)
        if cached is not None and not force_refresh:
            return cached

        try:
            brand = await self.scraper.scrape_brand_details(slug)
        except SCRAPE_ERRORS as e:
            fallback = cached or self._stored(self.brand_store, slug)
            if fallback is not None:
                logger.warning(f"Brand {slug} scrape failed, serving cached copy: {e}")
                return fallback
            raise

        if brand is None:
            return cached

        self.cache.set_brand(slug, brand)
        if self.brand_store is not None:
            self.brand_store.save(brand)
        return brand

    async def get_flavor(self, slug: str, force_refresh: bool = False) -> Optional[Flavor]:
        cached = self.cache.get_flavor(slug)
        if cached is not None and not force_refresh:
            return cached

        try:
            flavor = await self.scraper.scrape_flavor_details(slug)
        except SCRAPE_ERRORS as e:
            fallback = cached or self._stored(self.flavor_store, slug)
            if fallback is not None:
                logger.warning(f"Flavor {slug} scrape failed, serving cached copy: {e}")
                return fallback
            raise

        if flavor is None:
            return cached

        self._remember_flavor(flavor)
        return flavor

    async def get_flavors_by_brand(self, brand_slug: str, force_refresh: bool = False) -> list[Flavor]:
        """Every flavor of a brand; detail pages are fetched ``concurrency`` at a time."""
        cached = self.cache.get_brand_flavors(brand_slug)
        if cached is not None and not force_refresh:
            return cached

        try:
            outcome = await self.scraper.discover_flavor_urls(brand_slug)
            if not outcome.succeeded:
                logger.warning(f"Flavor URL discovery for {brand_slug} failed, not caching: {outcome.error}")
                return cached if cached is not None else []
            flavors = await self._scrape_flavors(outcome.urls)
        except SCRAPE_ERRORS as e:
            if cached is not None:
                logger.warning(f"Flavors of {brand_slug} failed to refresh, serving cached list: {e}")
                return cached
            raise

        for flavor in flavors:
            self._remember_flavor(flavor)
        self.cache.set_brand_flavors(brand_slug, flavors)
        self._merge_into_all_flavors(brand_slug, flavors)
        logger.info(f"Cached {len(flavors)} flavors for {brand_slug}")
        return flavors

    async def _scrape_flavors(self, urls: list[str]) -> list[Flavor]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def scrape(url: str) -> Optional[Flavor]:
            async with semaphore:
                return await self.scraper.scrape_flavor_details(url)

        results = await asyncio.gather(*(scrape(url) for url in urls))
        return [flavor for flavor in results if flavor is not None]

    async def get_brands_by_country(self, country: str) -> list[BrandSummary]:
        wanted = country.strip().lower()
        brands = await self.get_all_brands()
        return [brand for brand in brands if brand.country.lower() == wanted]

    def search_flavors(self, query: str) -> list[Flavor]:
        """
        Case-insensitive substring search over cached flavors.

        Matches name, alternative name, description and tags.
        """
        needle = query.strip().lower()
        if not needle:
            return []

        matches = []
        for flavor in self.cache.get_flavors() or []:
            haystack = [flavor.name, flavor.name_alt or "", flavor.description, *flavor.tags]
            if any(needle in text.lower() for text in haystack):
                matches.append(flavor)
        return matches

    async def refresh_brands(self) -> int:
        brands = await self.get_all_brands(force_refresh=True)
        logger.info(f"Brand list refreshed: {len(brands)} brands")
        return len(brands)

    async def refresh_flavors(self) -> int:
        """Re-scrape flavors of every brand that currently has a cached flavor list."""
        prefix = brand_flavors_key("")
        brand_slugs = [key[len(prefix):] for key in self.cache.keys() if key.startswith(prefix)]

        total = 0
        for brand_slug in brand_slugs:
            try:
                total += len(await self.get_flavors_by_brand(brand_slug, force_refresh=True))
            except SCRAPE_ERRORS as e:
                logger.error(f"Flavor refresh failed for {brand_slug}: {e}")
        logger.info(f"Flavor refresh done: {total} flavors across {len(brand_slugs)} brands")
        return total

    async def refresh_all(self) -> dict[str, int]:
        """Refresh the brand list, every brand's details, then cached flavor lists."""
        brands = await self.get_all_brands(force_refresh=True)
        batch = await self.scraper.scrape_brands_batch([b.slug for b in brands], self.concurrency)

        for brand in batch.brands:
            self.cache.set_brand(brand.slug, brand)
            if self.brand_store is not None:
                self.brand_store.save(brand)

        flavors = await self.refresh_flavors()
        summary = {
            "brands": len(brands),
            "brand_details": len(batch.brands),
            "brand_failures": len(batch.failures),
            "flavors": flavors,
        }
        logger.info(f"Full refresh done: {summary}")
        return summary

    def _remember_flavor(self, flavor: Flavor) -> None:
        self.cache.set_flavor(flavor.slug, flavor)
        if self.flavor_store is not None:
            self.flavor_store.save(flavor)

    def _merge_into_all_flavors(self, brand_slug: str, flavors: list[Flavor]) -> None:
        current = self.cache.get_flavors() or []
        kept = [f for f in current if f.brand_slug != brand_slug]
        self.cache.set_flavors(kept + flavors)

    @staticmethod
    def _stored(store: Optional[EntityStore], slug: str) -> Optional[Any]:
        return store.get_by_slug(slug) if store is not None else None
