"""
Dataset loading for the spot map.

Each category (coworking, library, café) comes from its own GeoJSON
FeatureCollection. All three are fetched concurrently and normalized into
Point objects through one ingestion function driven by a per-category
field-mapping table.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

import requests

from config import DataSources

logger = logging.getLogger(__name__)


class DatasetFetchFailure(Exception):
    """A category's data source is unreachable or returned invalid content."""

    def __init__(self, category: "Category", reason: str):
        super().__init__(f"{category.value}: {reason}")
        self.category = category
        self.reason = reason


# ── Unified Point Model ─────────────────────────────────────────────────────

class Category(str, Enum):
    COWORKING = "Coworking"
    LIBRARY = "Library"
    CAFE = "Cafe"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """Lenient lookup: accepts enum values, case variants and dataset spellings."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        return _CATEGORY_ALIASES.get(value.strip().lower())


_CATEGORY_ALIASES = {
    "coworking": Category.COWORKING,
    "library": Category.LIBRARY,
    "bibliotheque": Category.LIBRARY,
    "bibliothèque": Category.LIBRARY,
    "cafe": Category.CAFE,
    "café": Category.CAFE,
    "cofee": Category.CAFE,   # spelling used by the collected datasets
    "coffee": Category.CAFE,
}


@dataclass(frozen=True)
class Point:
    """One point of interest. Never mutated after ingestion."""
    id: str                              # "{lat}_{lon}", not unique across exact duplicates
    category: Category
    latitude: float
    longitude: float
    attributes: Mapping[str, Any]

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    @property
    def name(self) -> str:
        return self.attributes.get("name", "")


def point_key(latitude: float, longitude: float) -> str:
    return f"{latitude}_{longitude}"


# ── Field Mapping ───────────────────────────────────────────────────────────
# normalized attribute -> raw property names, first non-empty wins.
# A dotted name reads inside a nested property ("seating.indoor").

_OSM_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("name", ("name",)),
    ("hours", ("opening_hours", "hours")),
    ("phone", ("phone", "contact:phone")),
    ("email", ("email", "contact:email")),
    ("website", ("website", "contact:website")),
    ("description", ("description",)),
    ("street", ("addr:street",)),
    ("housenumber", ("addr:housenumber",)),
    ("postcode", ("addr:postcode",)),
    ("city", ("commune", "city")),
    ("contact_city", ("contact:city",)),
    ("addr_city", ("addr:city",)),
)

_AMENITY_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("internet_access", ("internet_access",)),
    ("wifi_fee", ("internet_access:fee", "wifiFee", "wifi_fee")),
    ("wheelchair", ("wheelchair",)),
    ("air_conditioning", ("air_conditioning", "airConditioning")),
    ("indoor_seating", ("indoor_seating", "seating.indoor")),
    ("outdoor_seating", ("outdoor_seating", "seating.outdoor")),
    ("operator_type", ("operator:type", "operator_type", "operator")),
    ("smoking", ("smoking",)),
    ("closed", ("closed", "disused")),
)

_LIBRARY_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("name", ("nometablissement", "name")),
    ("hours", ("heuresouverture", "opening_hours", "hours")),
    ("phone", ("telephone", "phone")),
    ("email", ("email", "contact:email")),
    ("website_url", ("accesweb",)),
    ("website", ("website",)),
    ("street", ("nomrue", "addr:street")),
    ("postcode", ("codepostal", "addr:postcode")),
    ("city", ("commune", "city")),
    ("contact_city", ("contact:city",)),
    ("addr_city", ("addr:city",)),
)

# Any of these set to true means wifi
WIFI_FLAGS = ("hasWifi", "wifi")

FIELD_MAPPINGS: dict[Category, tuple[tuple[str, tuple[str, ...]], ...]] = {
    Category.COWORKING: _OSM_FIELDS + _AMENITY_FIELDS,
    Category.LIBRARY: _LIBRARY_FIELDS + _AMENITY_FIELDS,
    Category.CAFE: _OSM_FIELDS + _AMENITY_FIELDS,
}


def _lookup(props: dict, name: str) -> Any:
    if name in props or "." not in name:
        return props.get(name)
    value: Any = props
    for part in name.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _first_present(props: dict, names: tuple[str, ...]) -> Any:
    for name in names:
        value = _lookup(props, name)
        if value is not None and value != "":
            return value
    return None


def _valid_coordinate(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_feature(feature: Any, category: Category) -> Optional[Point]:
    """
    Turn one GeoJSON feature into a Point.

    Returns None for features without a name or without a valid point
    geometry; those are dropped from the store rather than reported.
    """
    if not isinstance(feature, dict):
        return None

    geometry = feature.get("geometry") or {}
    coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        return None
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None

    lon, lat = coords[0], coords[1]
    if not (_valid_coordinate(lat) and _valid_coordinate(lon)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None

    props = feature.get("properties") or {}
    if not isinstance(props, dict):
        return None

    attributes: dict[str, Any] = {}
    for attribute, names in FIELD_MAPPINGS[category]:
        value = _first_present(props, names)
        if value is not None:
            attributes[attribute] = value

    if any(props.get(flag) is True for flag in WIFI_FLAGS):
        attributes["wifi"] = True

    if not attributes.get("name"):
        return None

    return Point(
        id=point_key(lat, lon),
        category=category,
        latitude=lat,
        longitude=lon,
        attributes=MappingProxyType(attributes),
    )


def ingest(collection: Any, category: Category) -> list[Point]:
    """Normalize a FeatureCollection; malformed features are skipped."""
    if not isinstance(collection, dict):
        return []
    features = collection.get("features")
    if not isinstance(features, list):
        return []

    points = []
    mislabelled = 0
    for feature in features:
        point = normalize_feature(feature, category)
        if not point:
            continue
        points.append(point)
        declared = (feature.get("properties") or {}).get("spotType")
        if declared is not None and Category.parse(declared) is not category:
            mislabelled += 1

    skipped = len(features) - len(points)
    if skipped:
        logger.info(f"[{category.value}] Skipped {skipped} malformed features")
    if mislabelled:
        logger.warning(f"[{category.value}] {mislabelled} features declare another spotType; "
                       f"kept as {category.value}")
    return points


# ── Point Store ─────────────────────────────────────────────────────────────

class PointStore:
    """Every loaded point, in load order. Read-only once built."""

    def __init__(self, points: list[Point]):
        self._points = tuple(points)
        self._by_id: dict[str, Point] = {}
        for point in self._points:
            # Duplicate coordinates coalesce to the first point loaded
            self._by_id.setdefault(point.id, point)

    @classmethod
    def from_collections(cls, collections: dict[Category, Any]) -> "PointStore":
        points: list[Point] = []
        for category in Category:
            if category in collections:
                points.extend(ingest(collections[category], category))
        return cls(points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    @property
    def points(self) -> tuple[Point, ...]:
        return self._points

    def get(self, point_id: str) -> Optional[Point]:
        return self._by_id.get(point_id)

    def counts(self) -> dict[Category, int]:
        counts = {category: 0 for category in Category}
        for point in self._points:
            counts[point.category] += 1
        return counts


# ── Fetchers ────────────────────────────────────────────────────────────────

class DatasetFetcher:
    """Loads one category's FeatureCollection from a URL or a local file."""

    HEADERS = {"Accept": "application/geo+json, application/json"}

    def __init__(
        self,
        category: Category,
        location: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.category = category
        self.location = location
        self.timeout = timeout
        # Caller-owned; when None each fetch opens and closes its own session
        self.session = session

    def fetch(self) -> list[Point]:
        data = self._load()
        if not isinstance(data, dict) or not isinstance(data.get("features"), list):
            raise DatasetFetchFailure(self.category, "not a FeatureCollection")

        points = ingest(data, self.category)
        logger.info(f"[{self.category.value}] Loaded {len(points)} points")
        return points

    def _load(self) -> Any:
        if self.location.startswith(("http://", "https://")):
            return self._load_url()
        return self._load_file()

    def _load_url(self) -> Any:
        if self.session is not None:
            return self._get(self.session)
        with requests.Session() as session:
            return self._get(session)

    def _get(self, session: requests.Session) -> Any:
        try:
            resp = session.get(self.location, headers=self.HEADERS, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.HTTPError as e:
            raise DatasetFetchFailure(self.category, f"HTTP {e.response.status_code}") from e
        except ValueError as e:
            # requests' JSONDecodeError is both a ValueError and a RequestException
            raise DatasetFetchFailure(self.category, "invalid JSON response") from e
        except requests.exceptions.RequestException as e:
            raise DatasetFetchFailure(self.category, f"request failed: {e}") from e

    def _load_file(self) -> Any:
        try:
            with open(self.location, encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise DatasetFetchFailure(self.category, f"cannot read {self.location}: {e}") from e
        except ValueError as e:
            raise DatasetFetchFailure(self.category, f"invalid JSON in {self.location}") from e


def fetch_all(sources: DataSources, session: Optional[requests.Session] = None) -> PointStore:
    """
    Fetch all categories concurrently and wait for every one to finish.

    A failing category contributes zero points; the others still load.
    """
    fetchers = [
        DatasetFetcher(Category.COWORKING, sources.coworking, sources.timeout, session),
        DatasetFetcher(Category.LIBRARY, sources.library, sources.timeout, session),
        DatasetFetcher(Category.CAFE, sources.cafe, sources.timeout, session),
    ]

    with ThreadPoolExecutor(max_workers=len(fetchers)) as pool:
        futures = [(f.category, pool.submit(f.fetch)) for f in fetchers]

        points: list[Point] = []
        for category, future in futures:
            try:
                points.extend(future.result())
            except DatasetFetchFailure as e:
                logger.error(f"[{category.value}] Dataset unavailable: {e.reason}")

    store = PointStore(points)
    logger.info(f"Point store ready: {len(store)} points")
    return store
