"""
Filter predicates over loaded points.

All predicates are pure and ANDed together; an unset criterion always
matches. Missing fields make a predicate fail instead of raising.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from config import CITY_COORDINATES
from fetchers import Category, Point

# Prioritized: explicit city, contact city, generic address city
CITY_FIELDS = ("city", "contact_city", "addr_city")

_KNOWN_CITIES = {name.lower(): name for name in CITY_COORDINATES}


@dataclass(frozen=True)
class FilterCriteria:
    """Current user filters. None or "" means unset."""
    city: Optional[str] = None
    category: Optional[Category] = None
    wifi_required: Optional[bool] = None
    search_text: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            not self.city
            and self.category is None
            and self.wifi_required is None
            and not self.search_text
        )


def resolve_city(attributes: Mapping[str, Any]) -> str:
    for field_name in CITY_FIELDS:
        value = attributes.get(field_name)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def has_wifi(attributes: Mapping[str, Any]) -> bool:
    return (
        attributes.get("wifi") is True
        or attributes.get("internet_access") in ("wlan", "yes")
    )


def format_address(attributes: Mapping[str, Any]) -> str:
    """Formats as 'street, postcode city'; empty when any part is missing."""
    street = attributes.get("street")
    if street and attributes.get("housenumber"):
        street = f"{attributes['housenumber']} {street}"
    postcode = attributes.get("postcode")
    city = resolve_city(attributes)
    if street and postcode and city:
        return f"{street}, {postcode} {city}"
    return ""


def known_city(text: str) -> Optional[str]:
    """Canonical city name if `text` names a known city exactly (any case)."""
    return _KNOWN_CITIES.get(text.strip().lower())


# ── Predicates ──────────────────────────────────────────────────────────────

def _city_contains(point: Point, wanted: str) -> bool:
    city = resolve_city(point.attributes)
    return bool(city) and wanted.lower() in city.lower()


def _city_equals(point: Point, wanted: str) -> bool:
    return resolve_city(point.attributes).strip().lower() == wanted.lower()


def _text_matches(point: Point, text: str) -> bool:
    needle = text.strip().lower()
    haystacks = (
        str(point.attributes.get("name", "")),
        point.category.value,
        format_address(point.attributes),
    )
    return any(needle in h.lower() for h in haystacks)


def matches(point: Point, criteria: FilterCriteria) -> bool:
    """True when the point passes every active criterion."""
    if criteria.city and not _city_contains(point, criteria.city):
        return False

    if criteria.category is not None and point.category != criteria.category:
        return False

    if criteria.wifi_required is not None and has_wifi(point.attributes) != criteria.wifi_required:
        return False

    text = (criteria.search_text or "").strip()
    if text:
        city = known_city(text)
        if city:
            if not _city_equals(point, city):
                return False
        elif not _text_matches(point, text):
            return False

    return True


def filter_points(points: Iterable[Point], criteria: FilterCriteria) -> list[Point]:
    """Matching points, in their original order."""
    if criteria.is_empty():
        return list(points)
    return [p for p in points if matches(p, criteria)]
