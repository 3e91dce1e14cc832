"""Shape checks for responses of the flavors-by-brand API."""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

FLAVOR_URL_PREFIX = "/tobaccos/"


@dataclass
class ApiValidationResult:
    """
    ``is_valid`` is False only when the response as a whole is unusable.

    Problems with single entries end up in ``errors`` and the entries are
    dropped later by the URL parser.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    item_count: int = 0
    valid_count: int = 0


def entry_errors(entry: Any) -> list[str]:
    """Problems with one API entry; empty when the entry is usable."""
    if not isinstance(entry, dict):
        return ["entry is not an object"]

    errors = []
    url = entry.get("url")
    slug = entry.get("slug")
    if not (isinstance(url, str) and url) and not (isinstance(slug, str) and slug):
        errors.append("missing url or slug")
    if isinstance(url, str) and url and not url.startswith(FLAVOR_URL_PREFIX):
        errors.append(f"invalid url {url!r}")
    return errors


def validate_api_response(response: Any) -> ApiValidationResult:
    if not isinstance(response, list):
        logger.debug(f"API response is not a list but {type(response).__name__}")
        return ApiValidationResult(is_valid=False, errors=["response is not a list"])

    errors = []
    valid = 0
    for index, entry in enumerate(response):
        problems = entry_errors(entry)
        if problems:
            errors.append(f"entry {index}: {', '.join(problems)}")
        else:
            valid += 1

    if errors:
        logger.warning(f"API response has {len(errors)} malformed entries out of {len(response)}")
    return ApiValidationResult(is_valid=True, errors=errors, item_count=len(response), valid_count=valid)
