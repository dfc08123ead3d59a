"""
Viewport windowing: which filtered points get materialized as markers.

The visible set is the in-bounds points truncated to a zoom-dependent cap.
Truncation keeps the first N in the filtered order; it does not prefer
points near the center of the map.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from config import ViewportSettings
from fetchers import Point

logger = logging.getLogger(__name__)

TILE_SIZE = 256
_MAX_MERCATOR_LAT = 85.0511287798


@dataclass(frozen=True)
class Bounds:
    """Geographic rectangle, edges inclusive."""
    south: float
    west: float
    north: float
    east: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east

    @property
    def center(self) -> tuple[float, float]:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)


@dataclass(frozen=True)
class ViewportState:
    bounds: Bounds
    zoom: int


def marker_cap(zoom: int, settings: Optional[ViewportSettings] = None) -> int:
    """Maximum markers shown at `zoom`: 100 below 10, 300 below 12, 600 below 14, else 1000."""
    settings = settings or ViewportSettings()
    for threshold, cap in settings.cap_thresholds:
        if zoom < threshold:
            return cap
    return settings.max_markers


def compute_visible(
    filtered: Sequence[Point],
    viewport: ViewportState,
    settings: Optional[ViewportSettings] = None,
) -> list[Point]:
    """First `marker_cap(zoom)` points inside the viewport, in input order."""
    cap = marker_cap(viewport.zoom, settings)
    visible = []
    for point in filtered:
        if viewport.bounds.contains(point.latitude, point.longitude):
            visible.append(point)
            if len(visible) == cap:
                break
    logger.debug(f"{len(visible)} visible points at zoom {viewport.zoom} (cap {cap})")
    return visible


def bounds_of(points: Iterable[Point]) -> Optional[Bounds]:
    """Smallest rectangle holding every point, or None for no points."""
    lats, lons = [], []
    for point in points:
        lats.append(point.latitude)
        lons.append(point.longitude)
    if not lats:
        return None
    return Bounds(south=min(lats), west=min(lons), north=max(lats), east=max(lons))


# ── Web Mercator ────────────────────────────────────────────────────────────

def project(latitude: float, longitude: float, zoom: float) -> tuple[float, float]:
    """lat/lon -> world pixel coordinates at `zoom`."""
    scale = TILE_SIZE * 2.0 ** zoom
    lat = max(-_MAX_MERCATOR_LAT, min(_MAX_MERCATOR_LAT, latitude))
    x = (longitude + 180.0) / 360.0 * scale
    sin_lat = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * scale
    return x, y


def unproject(x: float, y: float, zoom: float) -> tuple[float, float]:
    """World pixel coordinates at `zoom` -> lat/lon."""
    scale = TILE_SIZE * 2.0 ** zoom
    longitude = x / scale * 360.0 - 180.0
    latitude = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / scale))))
    return latitude, longitude


def bounds_around(center: tuple[float, float], zoom: int, width_px: int, height_px: int) -> Bounds:
    """Rectangle covered by a `width_px` x `height_px` map centered on `center`."""
    cx, cy = project(center[0], center[1], zoom)
    north, west = unproject(cx - width_px / 2, cy - height_px / 2, zoom)
    south, east = unproject(cx + width_px / 2, cy + height_px / 2, zoom)
    return Bounds(
        south=max(-90.0, south),
        west=max(-180.0, west),
        north=min(90.0, north),
        east=min(180.0, east),
    )


def fit_zoom(
    bounds: Bounds,
    width_px: int,
    height_px: int,
    padding: tuple[int, int] = (0, 0),
    max_zoom: int = 19,
) -> int:
    """Highest whole zoom, up to `max_zoom`, at which `bounds` fits inside the padded map."""
    usable_w = max(1, width_px - 2 * padding[0])
    usable_h = max(1, height_px - 2 * padding[1])
    for zoom in range(max_zoom, -1, -1):
        x1, y1 = project(bounds.north, bounds.west, zoom)
        x2, y2 = project(bounds.south, bounds.east, zoom)
        if abs(x2 - x1) <= usable_w and abs(y2 - y1) <= usable_h:
            return zoom
    return 0
