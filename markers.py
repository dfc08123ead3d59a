"""
Marker materialization.

MarkerCache keeps one marker handle per point id for the whole session and
re-attaches cached handles on every recomputation. Rendering goes through
the MapRenderer interface; HeadlessMap is an in-memory implementation used
by the CLI snapshot and the tests.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from config import ViewportSettings
from fetchers import Category, Point
from viewport import Bounds, bounds_around, fit_zoom

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkerIcon:
    url: str
    size: tuple[int, int] = (32, 32)
    anchor: tuple[int, int] = (16, 32)
    popup_anchor: tuple[int, int] = (0, -32)


ICONS: dict[str, MarkerIcon] = {
    Category.LIBRARY.value: MarkerIcon("./assets/icons/markers/Library.png"),
    Category.CAFE.value: MarkerIcon("./assets/icons/markers/Cofee.png"),
    Category.COWORKING.value: MarkerIcon("./assets/icons/markers/Coworking.png"),
    "Wifi": MarkerIcon("./assets/icons/markers/Wifi.png"),
}


def icon_for(point: Point) -> MarkerIcon:
    return ICONS[point.category.value]


# ── Renderer Interface ──────────────────────────────────────────────────────

class MapRenderer(ABC):
    """The slippy-map capability the session draws into."""

    @abstractmethod
    def set_view(self, center: tuple[float, float], zoom: int) -> None:
        ...

    @abstractmethod
    def fit_bounds(self, bounds: Bounds, padding: tuple[int, int] = (0, 0), max_zoom: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def get_bounds(self) -> Bounds:
        ...

    @abstractmethod
    def get_zoom(self) -> int:
        ...

    @abstractmethod
    def create_marker_handle(self, coordinates: tuple[float, float], icon: MarkerIcon, title: str = "") -> Any:
        ...

    @abstractmethod
    def attach(self, handle: Any) -> None:
        ...

    @abstractmethod
    def detach(self, handle: Any) -> None:
        ...

    @abstractmethod
    def on(self, event: str, callback: Callable[[], None]) -> None:
        """Subscribe to "moveend" / "zoomend"."""
        ...


@dataclass(eq=False)
class MarkerHandle:
    coordinates: tuple[float, float]
    icon: MarkerIcon
    title: str = ""


class HeadlessMap(MapRenderer):
    """
    In-memory map: tracks center, zoom and attached markers, and derives its
    bounds from a fixed pixel size with Web Mercator math.
    """

    def __init__(self, settings: Optional[ViewportSettings] = None):
        self.settings = settings or ViewportSettings()
        self.center = self.settings.default_center
        self.zoom = self.settings.default_zoom
        # Insertion-ordered layer; handles hash by identity
        self._layer: dict[MarkerHandle, None] = {}
        self.handles_created = 0
        self._listeners: dict[str, list[Callable[[], None]]] = defaultdict(list)

    @property
    def attached(self) -> list[MarkerHandle]:
        return list(self._layer)

    def set_view(self, center: tuple[float, float], zoom: int) -> None:
        zoom = max(0, min(self.settings.max_zoom, int(zoom)))
        zoom_changed = zoom != self.zoom
        self.center = (float(center[0]), float(center[1]))
        self.zoom = zoom
        self._emit("moveend")
        if zoom_changed:
            self._emit("zoomend")

    def fit_bounds(self, bounds: Bounds, padding: tuple[int, int] = (0, 0), max_zoom: Optional[int] = None) -> None:
        zoom = fit_zoom(
            bounds,
            self.settings.width_px,
            self.settings.height_px,
            padding,
            max_zoom if max_zoom is not None else self.settings.max_zoom,
        )
        self.set_view(bounds.center, zoom)

    def get_bounds(self) -> Bounds:
        return bounds_around(self.center, self.zoom, self.settings.width_px, self.settings.height_px)

    def get_zoom(self) -> int:
        return self.zoom

    def create_marker_handle(self, coordinates: tuple[float, float], icon: MarkerIcon, title: str = "") -> MarkerHandle:
        self.handles_created += 1
        return MarkerHandle(coordinates=coordinates, icon=icon, title=title)

    def attach(self, handle: MarkerHandle) -> None:
        self._layer[handle] = None

    def detach(self, handle: MarkerHandle) -> None:
        self._layer.pop(handle, None)

    def on(self, event: str, callback: Callable[[], None]) -> None:
        self._listeners[event].append(callback)

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            callback()


# ── Marker Cache ────────────────────────────────────────────────────────────

class MarkerCache:
    """One handle per point id, created on first visibility, kept for the session."""

    def __init__(self, renderer: MapRenderer):
        self.renderer = renderer
        self._handles: dict[str, Any] = {}
        self._attached: list[Any] = []

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, point_id: str) -> bool:
        return point_id in self._handles

    @property
    def attached(self) -> list[Any]:
        return list(self._attached)

    def handle_for(self, point: Point) -> Any:
        handle = self._handles.get(point.id)
        if handle is None:
            handle = self.renderer.create_marker_handle(point.coordinates, icon_for(point), point.name)
            self._handles[point.id] = handle
        return handle

    def materialize(self, visible: Iterable[Point]) -> list[Any]:
        """
        Detach everything currently shown, then attach exactly the handles
        for `visible`. Points sharing an id share one marker.
        """
        for handle in self._attached:
            self.renderer.detach(handle)
        self._attached = []

        seen: set[str] = set()
        misses = 0
        for point in visible:
            if point.id in seen:
                continue
            seen.add(point.id)
            if point.id not in self._handles:
                misses += 1
            handle = self.handle_for(point)
            self.renderer.attach(handle)
            self._attached.append(handle)

        logger.debug(f"Attached {len(self._attached)} markers ({misses} new)")
        return list(self._attached)
