from types import MappingProxyType

import pytest

from config import AppConfig
from dashboard_generator import DashboardPresenter
from fetchers import Category, Point, PointStore, point_key
from markers import HeadlessMap
from session import Session

PARIS = (48.8566, 2.3522)
LYON = (45.764, 4.8357)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


def build_point(lat: float, lon: float, category: Category = Category.CAFE, **attributes) -> Point:
    attributes.setdefault("name", f"Spot {lat},{lon}")
    return Point(
        id=point_key(lat, lon),
        category=category,
        latitude=lat,
        longitude=lon,
        attributes=MappingProxyType(attributes),
    )


@pytest.fixture
def make_point():
    return build_point


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def city_store():
    """Six Paris spots near the default map center and four Lyon spots."""
    points = []
    for i in range(6):
        category = [Category.COWORKING, Category.LIBRARY, Category.CAFE][i % 3]
        points.append(build_point(
            PARIS[0] + 0.001 * i, PARIS[1] + 0.001 * i, category,
            name=f"Paris spot {i}", addr_city="Paris",
            internet_access="wlan" if i % 2 == 0 else "no",
        ))
    for i in range(4):
        points.append(build_point(
            LYON[0] + 0.001 * i, LYON[1] + 0.001 * i, Category.CAFE,
            name=f"Lyon café {i}", addr_city="Lyon",
        ))
    return PointStore(points)


@pytest.fixture
def app(tmp_path, clock):
    """Session wired to a headless map and a dashboard presenter."""
    config = AppConfig(output_dir=str(tmp_path), page_size=3)
    renderer = HeadlessMap(config.viewport)
    presenter = DashboardPresenter()
    session = Session(config, renderer, presenter, clock=clock)
    return session, renderer, presenter
