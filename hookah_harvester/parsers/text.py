"""Text rules for the numeric, date and URL fragments found on catalogue pages.

Every helper returns ``None`` for input it cannot read; none of them raise.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import urlparse

SLUG_PREFIX = "tobaccos"

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
_VIEWS_KK_RE = re.compile(r"^([\d.]+)kk$", re.IGNORECASE)
_VIEWS_K_RE = re.compile(r"^([\d.]+)k$", re.IGNORECASE)
_FLAVORS_COUNT_RE = re.compile(r"^(\d+)\s*(?:вкус|вкуса|вкусов)", re.IGNORECASE)
_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_DATE_RE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_RATING_RE = re.compile(r"(-?\d+(?:\.\d+)?)")
_INT_PREFIX_RE = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
_YEAR_RE = re.compile(r"^\d{4}$")
_TAG_ID_RE = re.compile(r"[?&]t=(\d+)")

TRUE_WORDS = {"true", "yes", "1", "да", "есть", "включено"}
FALSE_WORDS = {"false", "no", "0", "нет", "нету", "выключено"}


def _scaled(number: str, factor: int) -> Optional[int]:
    try:
        value = Decimal(number) * factor
    except InvalidOperation:
        return None
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_views(text: Optional[str]) -> Optional[int]:
    """
    Parse a view counter such as "319.1k", "1.9kk" or "1000".

    ``k`` multiplies by a thousand and ``kk`` by a million, rounding half up.
    """
    if not text:
        return None
    trimmed = text.strip()

    match = _VIEWS_KK_RE.match(trimmed)
    if match:
        return _scaled(match.group(1), 1_000_000)

    match = _VIEWS_K_RE.match(trimmed)
    if match:
        return _scaled(match.group(1), 1_000)

    digits = re.sub(r"[^\d]", "", trimmed)
    return int(digits) if digits else None


def parse_flavors_count(text: Optional[str]) -> Optional[int]:
    """Leading integer followed by "вкус"/"вкуса"/"вкусов" ("53 вкуса" -> 53)."""
    if not text:
        return None
    match = _FLAVORS_COUNT_RE.match(text.strip())
    return int(match.group(1)) if match else None


def parse_percentage(text: Optional[str]) -> Optional[float]:
    """First "NN%" / "NN.N %" in the text."""
    if not text:
        return None
    match = _PERCENT_RE.search(text)
    return float(match.group(1)) if match else None


def parse_date(text: Optional[str]) -> Optional[date]:
    """DD.MM.YYYY only; any other shape, or an impossible date, gives None."""
    if not text:
        return None
    match = _DATE_RE.match(text.strip())
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_int(text: Optional[str]) -> Optional[int]:
    """Leading integer of the text ("42 отзыва" -> 42)."""
    if not text:
        return None
    match = _INT_PREFIX_RE.match(text.strip())
    return int(match.group(0)) if match else None


def parse_float(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    match = _FLOAT_PREFIX_RE.match(text.strip())
    return float(match.group(0)) if match else None


def parse_rating(text: Optional[str]) -> Optional[float]:
    """First number in the text, kept only inside the 0-5 rating scale."""
    if not text:
        return None
    match = _RATING_RE.search(text)
    if not match:
        return None
    rating = float(match.group(1))
    if rating < 0 or rating > 5:
        return None
    return rating


def parse_bool(text: Optional[str]) -> Optional[bool]:
    if not text:
        return None
    word = text.strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return None


def parse_year(text: Optional[str]) -> Optional[int]:
    """Exactly four digits, otherwise None."""
    if not text:
        return None
    trimmed = text.strip()
    return int(trimmed) if _YEAR_RE.match(trimmed) else None


def parse_tag_id(href: Optional[str]) -> Optional[int]:
    """Tag id from the ``t`` query parameter of a tag link."""
    if not href:
        return None
    match = _TAG_ID_RE.search(href)
    return int(match.group(1)) if match else None


def extract_slug(url: Optional[str]) -> Optional[str]:
    """
    Slug of a catalogue URL or path, without the "tobaccos" prefix.

    Examples:
        "/tobaccos/sarma" -> "sarma"
        "https://htreviews.org/tobaccos/sarma/klassicheskaya/zima"
            -> "sarma/klassicheskaya/zima"
    """
    if not url:
        return None
    url = url.strip()

    parsed = urlparse(url)
    path = parsed.path if parsed.scheme and parsed.netloc else url.split("?", 1)[0].split("#", 1)[0]

    parts = [part for part in path.split("/") if part]
    if parts and parts[0].lower() == SLUG_PREFIX:
        parts = parts[1:]
    if not parts:
        return None
    return "/".join(parts)


def slug_to_path(slug: str) -> str:
    """Inverse of extract_slug: "sarma/zima" -> "/tobaccos/sarma/zima"."""
    return f"/{SLUG_PREFIX}/{slug.strip('/')}"


def brand_slug_of(slug: Optional[str]) -> Optional[str]:
    """First segment of a slug path."""
    if not slug:
        return None
    return slug.split("/", 1)[0] or None


def is_valid_slug(slug: Optional[str], allow_path: bool = False) -> bool:
    """Lowercase letters, digits and hyphens; with allow_path every segment must match."""
    if not slug or not isinstance(slug, str):
        return False
    if allow_path:
        return all(SLUG_RE.match(segment) for segment in slug.split("/"))
    return bool(SLUG_RE.match(slug))
