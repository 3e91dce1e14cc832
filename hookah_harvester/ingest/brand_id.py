"""Numeric brand id lookup on a brand page."""

import logging
from typing import Optional, Union

from hookah_harvester.parsers.document import Document, ensure_document

logger = logging.getLogger(__name__)

BRAND_ID_SELECTOR = ".object_wrapper[data-id]"
FALLBACK_SELECTOR = "[data-id]"

# Info rows carry data-id too, but there it is a row index
SKIPPED_CLASSES = {"object_info_item"}


def _numeric(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value if value.isdigit() else None


def extract_brand_id(content: Union[str, Document], attribute: str = "data-id") -> Optional[str]:
    """Return the brand id as a digit string, or None when the page has none."""
    doc = ensure_document(content)

    brand_id = _numeric(doc.query(BRAND_ID_SELECTOR).attr(attribute))
    if brand_id:
        return brand_id

    for node in doc.query(FALLBACK_SELECTOR):
        if SKIPPED_CLASSES & set((node.attr("class") or "").split()):
            continue
        brand_id = _numeric(node.attr(attribute))
        if brand_id:
            logger.debug(f"Brand id {brand_id} found on <{node.tag}>")
            return brand_id
        break

    logger.debug("No brand id on page")
    return None
