"""
Flavor URL extraction through the site's JSON endpoint.

The brand page loads its flavors with:

    POST /postData
    {"action": "objectByBrand", "data": {"id": "<brand id>", "limit": 20, "offset": 0, "sort": {}}}

and the response is a JSON list of flavor objects carrying ``url`` and/or
``slug``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from hookah_harvester.config import settings
from hookah_harvester.ingest.api_validator import validate_api_response
from hookah_harvester.ingest.flavor_urls import dedupe_urls, parse_flavor_urls
from hookah_harvester.ingest.http_client import FetchClient, FetchError

logger = logging.getLogger(__name__)

API_ACTION = "objectByBrand"


@dataclass
class ApiAttempt:
    """What the API run produced; ``reason`` is set when it failed."""

    urls: list[str] = field(default_factory=list)
    reason: Optional[str] = None
    requests_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.reason is None


class ApiFlavorExtractor:
    """Pages through the JSON endpoint in fixed-size batches."""

    def __init__(
        self,
        client: FetchClient,
        endpoint: Optional[str] = None,
        per_request: Optional[int] = None,
        max_pages: Optional[int] = None,
        request_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.endpoint = endpoint or settings.api_endpoint
        self.per_request = per_request or settings.api_flavors_per_request
        self.max_pages = max_pages or settings.api_max_pages
        self.request_delay = request_delay if request_delay is not None else settings.api_request_delay_seconds
        self._sleep = sleep

    def payload(self, brand_id: str, offset: int) -> dict[str, Any]:
        return {
            "action": API_ACTION,
            "data": {"id": brand_id, "limit": self.per_request, "offset": offset, "sort": {}},
        }

    async def fetch_batch(self, brand_id: str, offset: int) -> Any:
        response = await self.client.post_json(self.endpoint, self.payload(brand_id, offset))
        return response.json()

    async def extract(self, brand_id: str, brand_slug: str = "") -> ApiAttempt:
        """
        Collect every flavor URL of a brand.

        Never raises for source-side problems; failures come back as an
        ApiAttempt with ``reason`` set and whatever was collected before.
        """
        urls: list[str] = []
        requests = 0
        offset = 0

        for page in range(self.max_pages):
            if page > 0 and self.request_delay > 0:
                await self._sleep(self.request_delay)

            requests += 1
            try:
                batch = await self.fetch_batch(brand_id, offset)
            except FetchError as e:
                logger.error(f"API extraction for {brand_slug or brand_id} failed at offset {offset}: {e}")
                return ApiAttempt(dedupe_urls(urls), f"request failed: {e}", requests)
            except ValueError as e:
                logger.error(f"API returned invalid JSON for {brand_slug or brand_id} at offset {offset}: {e}")
                return ApiAttempt(dedupe_urls(urls), "invalid JSON response", requests)

            validation = validate_api_response(batch)
            if not validation.is_valid:
                logger.warning(f"Unusable API response for {brand_slug or brand_id}: {validation.errors}")
                return ApiAttempt(dedupe_urls(urls), "; ".join(validation.errors), requests)

            urls.extend(parse_flavor_urls(batch))
            logger.debug(f"API batch at offset {offset} for {brand_slug or brand_id}: {len(batch)} entries")

            # A short (or empty) batch is the last one
            if len(batch) < self.per_request:
                break
            offset += self.per_request
        else:
            logger.warning(f"API extraction for {brand_slug or brand_id} stopped at the {self.max_pages} page cap")

        unique = dedupe_urls(urls)
        logger.info(f"API extraction for {brand_slug or brand_id}: {len(unique)} URLs in {requests} requests")
        return ApiAttempt(unique, None, requests)
