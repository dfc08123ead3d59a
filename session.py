"""
Session orchestration: wires user events to the filtering, windowing,
pagination and comparison steps and pushes results to the map renderer and
the presenter.

All state lives in one AppState owned by the Session. Every step replaces
its slice of state wholesale; nothing is patched in place.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from config import CITY_COORDINATES, AppConfig
from debounce import Debouncer
from fetchers import Category, Point, PointStore, fetch_all
from filters import FilterCriteria, filter_points, known_city
from markers import MapRenderer, MarkerCache
from pagination import PaginationState, has_more, load_more, reset_on_filter_change, visible_page
from scorer import Comparison, SelectionLimitExceeded, SelectionSet, compare, score_breakdown, score_point
from viewport import ViewportState, bounds_of, compute_visible

logger = logging.getLogger(__name__)

STATUS_LOADING = "loading"
STATUS_READY = "ready"
STATUS_NO_DATA = "no_data"

NO_DATA_MESSAGE = "No data available"


class Presenter(ABC):
    """The list/detail/notice surface the session renders into."""

    @abstractmethod
    def begin_list(self, total: int, more_available: bool) -> None:
        """Start a fresh list render; `total` is the number of filtered spots."""

    @abstractmethod
    def render_list_item(self, point: Point, selected: bool) -> None:
        ...

    @abstractmethod
    def render_detail_panel(self, point: Point, score: int, reasons: list[tuple[str, int]]) -> None:
        ...

    @abstractmethod
    def render_comparison(self, comparison: Comparison) -> None:
        ...

    @abstractmethod
    def notice(self, message: str) -> None:
        ...


@dataclass
class AppState:
    criteria: FilterCriteria
    pagination: PaginationState
    selection: SelectionSet
    filtered: list[Point] = field(default_factory=list)
    visible: list[Point] = field(default_factory=list)
    status: str = STATUS_LOADING


class Session:
    def __init__(
        self,
        config: AppConfig,
        renderer: MapRenderer,
        presenter: Presenter,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.renderer = renderer
        self.presenter = presenter
        self.store = PointStore([])
        self.markers = MarkerCache(renderer)
        self.state = AppState(
            criteria=FilterCriteria(),
            pagination=PaginationState.first_page(config.page_size),
            selection=SelectionSet(config.max_selection),
        )

        windows = config.debounce
        self._filter_debounce = Debouncer(self.apply_filters, windows.filter_ms, clock)
        self._search_debounce = Debouncer(self.apply_filters, windows.search_ms, clock)
        self._viewport_debounce = Debouncer(self.update_visible_markers, windows.viewport_ms, clock)

        renderer.on("moveend", self._on_viewport_change)
        renderer.on("zoomend", self._on_viewport_change)

    # ── Loading ─────────────────────────────────────────────────────────────

    def load(self) -> None:
        """Fetch every dataset, then render once all of them have settled."""
        self.start(fetch_all(self.config.sources))

    def start(self, store: PointStore) -> None:
        self.store = store
        if not len(store):
            self.state.status = STATUS_NO_DATA
            logger.warning("No spots loaded from any source")
            self.presenter.notice(NO_DATA_MESSAGE)
            self.markers.materialize([])
            self.presenter.begin_list(0, False)
            return

        self.state.status = STATUS_READY
        counts = ", ".join(f"{c.value}: {n}" for c, n in store.counts().items())
        logger.info(f"Session started with {len(store)} spots ({counts})")
        self._refilter()
        self.update_visible_markers()

    # ── Filter events ───────────────────────────────────────────────────────

    def set_city(self, city: Optional[str]) -> None:
        self._update_criteria(city=city or None)
        self._filter_debounce()

    def set_category(self, category: Optional[Category]) -> None:
        self._update_criteria(category=category)
        self._filter_debounce()

    def set_wifi(self, wifi_required: Optional[bool]) -> None:
        self._update_criteria(wifi_required=wifi_required)
        self._filter_debounce()

    def set_search_text(self, text: Optional[str]) -> None:
        self._update_criteria(search_text=text or None)
        self._search_debounce()

    def _update_criteria(self, **changes) -> None:
        self.state.criteria = replace(self.state.criteria, **changes)

    def apply_filters(self) -> None:
        """Recompute the filtered set, list and markers, then frame the result."""
        if self.state.status != STATUS_READY:
            return
        logger.info(f"Filters applied: {self.state.criteria}")
        self._refilter()
        self._center_on_filters()
        self.update_visible_markers()

    def reset_filters(self) -> None:
        self._filter_debounce.cancel()
        self._search_debounce.cancel()
        self.state.criteria = FilterCriteria()
        self.apply_filters()
        view = self.config.viewport
        self.renderer.set_view(view.default_center, view.default_zoom)

    def _refilter(self) -> None:
        self.state.filtered = filter_points(self.store, self.state.criteria)
        self.state.pagination = reset_on_filter_change(self.state.pagination)
        logger.info(f"{len(self.state.filtered)} / {len(self.store)} spots found")
        self._render_list()

    def _center_on_filters(self) -> None:
        view = self.config.viewport
        city = known_city(self.state.criteria.city or "")
        if city:
            self.renderer.set_view(CITY_COORDINATES[city], view.city_zoom)
        elif self.state.filtered:
            self.renderer.fit_bounds(
                bounds_of(self.state.filtered),
                padding=view.fit_padding,
                max_zoom=view.fit_max_zoom,
            )

    # ── Map ─────────────────────────────────────────────────────────────────

    def _on_viewport_change(self) -> None:
        self._viewport_debounce()

    def update_visible_markers(self) -> list[Point]:
        viewport = ViewportState(bounds=self.renderer.get_bounds(), zoom=self.renderer.get_zoom())
        visible = compute_visible(self.state.filtered, viewport, self.config.viewport)
        self.markers.materialize(visible)
        self.state.visible = visible
        return visible

    # ── List ────────────────────────────────────────────────────────────────

    def load_more(self) -> None:
        self.state.pagination = load_more(self.state.pagination)
        self._render_list()

    def _render_list(self) -> None:
        filtered = self.state.filtered
        page = visible_page(filtered, self.state.pagination)
        self.presenter.begin_list(len(filtered), has_more(filtered, self.state.pagination))
        for point in page:
            self.presenter.render_list_item(point, point in self.state.selection)

    @property
    def page(self) -> list[Point]:
        return visible_page(self.state.filtered, self.state.pagination)

    def open_detail(self, point_id: str) -> bool:
        point = self.store.get(point_id)
        if point is None:
            logger.warning(f"Unknown spot id: {point_id}")
            return False
        self.presenter.render_detail_panel(point, score_point(point), score_breakdown(point.attributes))
        return True

    # ── Selection ───────────────────────────────────────────────────────────

    def toggle_selection(self, point_id: str) -> bool:
        """Add or remove a spot from the comparison. Returns False if rejected."""
        point = self.store.get(point_id)
        if point is None:
            logger.warning(f"Unknown spot id: {point_id}")
            return False
        try:
            self.state.selection.toggle(point)
        except SelectionLimitExceeded as e:
            logger.warning(f"Selection rejected for {point.name}: {e}")
            self.presenter.notice(str(e))
            return False

        self.presenter.render_comparison(compare(self.state.selection))
        return True

    def comparison(self) -> Comparison:
        return compare(self.state.selection)

    # ── Event loop ──────────────────────────────────────────────────────────

    def tick(self) -> None:
        """Run any debounced work whose window has elapsed."""
        self._filter_debounce.poll()
        self._search_debounce.poll()
        self._viewport_debounce.poll()

    def settle(self) -> None:
        """Run all pending debounced work immediately."""
        self._filter_debounce.flush()
        self._search_debounce.flush()
        self._viewport_debounce.flush()
