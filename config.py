"""
Configuration for the Spot Finder map.
Point the data sources at your GeoJSON files or URLs.

Data sources (one per category):
  - Coworking spaces  (OpenStreetMap export)
  - Libraries         (regional open data portal export)
  - Cafés with wifi   (OpenStreetMap export)
"""

import os
from dataclasses import dataclass, field


# Known cities: used to center the map and as exact-match search terms
CITY_COORDINATES: dict[str, tuple[float, float]] = {
    "Paris": (48.8566, 2.3522),
    "Lyon": (45.764, 4.8357),
    "Marseille": (43.2965, 5.3698),
    "Toulouse": (43.6047, 1.4442),
    "Nice": (43.7102, 7.262),
}


@dataclass
class DataSources:
    """Dataset locations - http(s) URLs or local paths, set via environment variables."""
    coworking: str = os.getenv("SPOTS_COWORKING_URL", "data/coworking_france.geojson")
    library: str = os.getenv("SPOTS_LIBRARY_URL", "data/bibliotheques.geojson")
    cafe: str = os.getenv("SPOTS_CAFE_URL", "data/cofee_france.geojson")
    timeout: int = 30


@dataclass
class ViewportSettings:
    """
    Marker budget and map framing.
    A zoom below a threshold gets that threshold's cap; anything above the
    last threshold gets `max_markers`.
    """
    cap_thresholds: tuple = ((10, 100), (12, 300), (14, 600))
    max_markers: int = 1000
    default_center: tuple[float, float] = CITY_COORDINATES["Paris"]
    default_zoom: int = 13
    city_zoom: int = 12
    fit_padding: tuple[int, int] = (50, 50)
    fit_max_zoom: int = 15
    max_zoom: int = 19
    # Pixel size of the headless map used by the CLI
    width_px: int = 1024
    height_px: int = 768


@dataclass
class DebounceSettings:
    """Debounce windows in milliseconds."""
    filter_ms: int = 150
    search_ms: int = 300
    viewport_ms: int = 200


@dataclass
class AppConfig:
    """Top-level configuration."""
    sources: DataSources = field(default_factory=DataSources)
    viewport: ViewportSettings = field(default_factory=ViewportSettings)
    debounce: DebounceSettings = field(default_factory=DebounceSettings)

    # List entries revealed per "load more"
    page_size: int = 20

    # Points that can be compared at once
    max_selection: int = 4

    # Output
    output_dir: str = os.path.expanduser("~/spot-finder/output")
    dashboard_filename: str = "dashboard.html"
    data_filename: str = "session.json"
