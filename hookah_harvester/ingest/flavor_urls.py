"""Turn API entries into flavor paths."""

import logging
from typing import Any, Iterable

from hookah_harvester.ingest.api_validator import entry_errors
from hookah_harvester.parsers.text import slug_to_path

logger = logging.getLogger(__name__)


def flavor_url_of(entry: Any) -> str | None:
    """``url`` as given, else ``/tobaccos/{slug}``; None for malformed entries."""
    if entry_errors(entry):
        return None
    url = entry.get("url")
    if isinstance(url, str) and url:
        return url
    return slug_to_path(entry["slug"])


def parse_flavor_urls(entries: Iterable[Any]) -> list[str]:
    """Flavor paths of every well-formed entry, in response order."""
    urls = []
    dropped = 0
    for entry in entries:
        url = flavor_url_of(entry)
        if url is None:
            dropped += 1
            continue
        urls.append(url)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed API entries")
    return urls


def dedupe_urls(urls: Iterable[str]) -> list[str]:
    """Drop exact repeats, keeping the first occurrence of each URL."""
    return list(dict.fromkeys(urls))
