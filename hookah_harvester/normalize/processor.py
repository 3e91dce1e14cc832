"""Normalize text and URLs pulled out of catalogue pages."""

import logging
import re
from dataclasses import fields, is_dataclass
from typing import Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from hookah_harvester.config import settings

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10000
MAX_NAME_LENGTH = 500
MAX_URL_LENGTH = 2000

# Query parameters that only carry tracking state
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    "gclid",
}

NAME_FIELDS = {"name", "name_en", "name_alt", "brand_name", "line_name", "added_by"}
URL_FIELDS = {"image_url", "website", "url"}

R = TypeVar("R")

_WS_RE = re.compile(r"\s+")


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace (including line breaks) to single spaces and trim."""
    if text is None:
        return ""
    return _WS_RE.sub(" ", text).strip()


def normalize_url(url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """
    Make a URL absolute and drop tracking parameters.

    Args:
        url: Absolute URL, protocol-relative URL, or path
        base_url: Base for relative URLs (defaults to settings.base_url)

    Returns:
        Normalized absolute URL, or None for blank/unusable input
    """
    if not url or not url.strip():
        return None

    url = url.strip()
    try:
        absolute = urljoin((base_url or settings.base_url).rstrip("/") + "/", url)
        parsed = urlparse(absolute)
    except ValueError as e:
        logger.debug(f"Failed to normalize URL {url!r}: {e}")
        return None

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None

    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
    return urlunparse(parsed._replace(query=urlencode(query)))


def truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


def normalize_record(record: R) -> R:
    """
    Clean every string field of a record dataclass in place.

    Names are capped at MAX_NAME_LENGTH, URLs at MAX_URL_LENGTH (longer URLs
    are dropped rather than cut), other text at MAX_TEXT_LENGTH.
    """
    if not is_dataclass(record):
        return record

    for f in fields(record):
        value = getattr(record, f.name)
        if not isinstance(value, str):
            continue
        if f.name in URL_FIELDS:
            if len(value) > MAX_URL_LENGTH:
                logger.debug(f"Dropping over-long {f.name} ({len(value)} chars)")
                setattr(record, f.name, None)
            continue
        if f.name == "slug" or f.name.endswith("_slug"):
            continue
        limit = MAX_NAME_LENGTH if f.name in NAME_FIELDS else MAX_TEXT_LENGTH
        setattr(record, f.name, truncate(clean_text(value), limit))
    return record
