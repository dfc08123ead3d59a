#!/usr/bin/env python3
"""
Spot Finder — Main Entry Point

Loads the coworking / library / café datasets, applies filters, windows the
markers to the current viewport, compares selected spots and writes a
dashboard snapshot.

Usage:
    python main.py --demo                          # Sample data (no datasets needed)
    python main.py --city Paris --wifi yes         # Filter the real datasets
    python main.py --demo --select ID --select ID  # Compare spots by id
    python main.py --demo --open                   # Open dashboard in browser

Environment Variables:
    SPOTS_COWORKING_URL   — coworking GeoJSON (URL or path)
    SPOTS_LIBRARY_URL     — libraries GeoJSON (URL or path)
    SPOTS_CAFE_URL        — cafés GeoJSON (URL or path)
"""

import argparse
import logging
import os
import random
import webbrowser
from typing import Any, Optional

from config import CITY_COORDINATES, AppConfig
from dashboard_generator import DashboardPresenter, generate_dashboard
from fetchers import Category, PointStore
from markers import HeadlessMap
from session import STATUS_NO_DATA, Session

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def generate_demo_data(seed: int = 7) -> dict[Category, dict[str, Any]]:
    """Sample FeatureCollections shaped like the collected datasets."""
    rng = random.Random(seed)
    streets = ["Rue de la Paix", "Rue Oberkampf", "Rue de Rivoli", "Boulevard Voltaire",
               "Rue Victor Hugo", "Avenue Jean Jaurès", "Rue du Commerce", "Quai des Célestins"]
    postcodes = {"Paris": "75011", "Lyon": "69002", "Marseille": "13001",
                 "Toulouse": "31000", "Nice": "06000"}

    def feature(lat: float, lng: float, props: dict) -> dict:
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [round(lng, 6), round(lat, 6)]},
            "properties": props,
        }

    def osm_props(name: str, city: str, spot_type: str) -> dict:
        props = {
            "name": name,
            "spotType": spot_type,
            "addr:city": city,
            "addr:street": rng.choice(streets),
            "addr:housenumber": str(rng.randint(1, 150)),
            "addr:postcode": postcodes[city],
            "internet_access": rng.choice(["wlan", "wlan", "yes", "no"]),
            "wheelchair": rng.choice(["yes", "limited", "no"]),
            "outdoor_seating": rng.choice(["yes", "no"]),
            "indoor_seating": rng.choice(["yes", "yes", "no"]),
        }
        if rng.random() > 0.3:
            props["opening_hours"] = rng.choice(["Mo-Fr 09:00-18:00", "Mo-Su 08:00-20:00"])
        if rng.random() > 0.4:
            props["phone"] = f"+33 1 {rng.randint(10, 99)} {rng.randint(10, 99)} {rng.randint(10, 99)} {rng.randint(10, 99)}"
        if rng.random() > 0.5:
            props["internet_access:fee"] = rng.choice(["no", "yes", "customers"])
        if rng.random() > 0.6:
            props["air_conditioning"] = "yes"
        if rng.random() > 0.5:
            props["smoking"] = "no"
        return props

    collections: dict[Category, dict[str, Any]] = {c: {"type": "FeatureCollection", "features": []} for c in Category}
    for city, (lat, lng) in CITY_COORDINATES.items():
        for i in range(rng.randint(8, 14)):
            collections[Category.COWORKING]["features"].append(feature(
                lat + rng.uniform(-0.04, 0.04), lng + rng.uniform(-0.05, 0.05),
                osm_props(f"Cowork {city} {i + 1}", city, "Coworking"),
            ))
        for i in range(rng.randint(8, 14)):
            collections[Category.CAFE]["features"].append(feature(
                lat + rng.uniform(-0.04, 0.04), lng + rng.uniform(-0.05, 0.05),
                osm_props(f"Café {city} {i + 1}", city, "Cofee"),
            ))
        for i in range(rng.randint(5, 10)):
            props = {
                "nometablissement": f"Bibliothèque {city} {i + 1}",
                "spotType": "Library",
                "nomrue": rng.choice(streets),
                "codepostal": postcodes[city],
                "commune": city,
                "heuresouverture": "Ma-Sa 10:00-19:00",
                "telephone": f"01 {rng.randint(10, 99)} {rng.randint(10, 99)} {rng.randint(10, 99)} {rng.randint(10, 99)}",
                "accesweb": f"https://bibliotheques.example.fr/{city.lower()}/{i + 1}",
                "operator:type": "public",
                "wheelchair": rng.choice(["yes", "limited"]),
                "hasWifi": rng.random() > 0.3,
                "internet_access:fee": "no",
                "indoor_seating": "yes",
                "smoking": "no",
            }
            collections[Category.LIBRARY]["features"].append(feature(
                lat + rng.uniform(-0.04, 0.04), lng + rng.uniform(-0.05, 0.05), props,
            ))

    # A couple of malformed features, dropped at ingestion
    collections[Category.CAFE]["features"].append({"type": "Feature", "geometry": None, "properties": {"name": "Ghost"}})
    collections[Category.COWORKING]["features"].append(feature(48.85, 2.35, {"spotType": "Coworking"}))
    return collections


def _parse_wifi(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value == "yes"


def main():
    parser = argparse.ArgumentParser(description="Spot Finder")
    parser.add_argument("--demo", action="store_true", help="Use sample data (no datasets needed)")
    parser.add_argument("--open", action="store_true", help="Open dashboard in browser after generating")
    parser.add_argument("--city", help="City name (substring match)")
    parser.add_argument("--type", choices=[c.value for c in Category], help="Spot category")
    parser.add_argument("--wifi", choices=["yes", "no"], help="Require (or exclude) wifi")
    parser.add_argument("--search", help="Free text, or an exact known city name")
    parser.add_argument("--select", action="append", default=[], metavar="ID",
                        help="Spot id (lat_lon) to compare; repeat up to the selection limit")
    parser.add_argument("--more", type=int, default=0, metavar="N", help="Reveal N more list pages")
    parser.add_argument("--center", type=float, nargs=2, metavar=("LAT", "LON"), help="Map center")
    parser.add_argument("--zoom", type=int, help="Map zoom level")
    parser.add_argument("--detail", metavar="ID", help="Spot id to open in the detail panel")
    parser.add_argument("--seed", type=int, default=7, help="Seed for --demo data")
    args = parser.parse_args()

    config = AppConfig()
    os.makedirs(config.output_dir, exist_ok=True)

    renderer = HeadlessMap(config.viewport)
    presenter = DashboardPresenter()
    session = Session(config, renderer, presenter)

    if args.demo:
        logger.info("Running in DEMO mode with sample data...")
        session.start(PointStore.from_collections(generate_demo_data(args.seed)))
    else:
        logger.info("Loading datasets...")
        session.load()

    if session.state.status == STATUS_NO_DATA:
        logger.warning("No spots available. Check the dataset locations or try --demo.")

    if args.city is not None:
        session.set_city(args.city)
    if args.type:
        session.set_category(Category.parse(args.type))
    if args.wifi:
        session.set_wifi(_parse_wifi(args.wifi))
    if args.search:
        session.set_search_text(args.search)
    session.settle()

    if args.center or args.zoom is not None:
        center = tuple(args.center) if args.center else renderer.center
        zoom = args.zoom if args.zoom is not None else renderer.get_zoom()
        renderer.set_view(center, zoom)
        session.settle()

    for _ in range(args.more):
        session.load_more()

    for point_id in args.select:
        session.toggle_selection(point_id)

    if args.detail:
        session.open_detail(args.detail)

    comparison = session.comparison()
    if comparison.best:
        best, score = comparison.best
        logger.info(f"Recommended: {best.name} ({score}/100)")

    html_path = generate_dashboard(session, presenter, config)
    logger.info(f"Dashboard saved to: {html_path}")
    logger.info(f"JSON data saved to: {os.path.join(config.output_dir, config.data_filename)}")

    if args.open:
        webbrowser.open(f"file://{os.path.abspath(html_path)}")

    print(f"\n✅ Dashboard ready: {html_path}")
    return html_path


if __name__ == "__main__":
    main()
