"""
Desirability scoring and side-by-side comparison of selected spots.

Each spot gets a 0-100 score from an additive checklist of amenities.
Scores are absolute: a spot's score never depends on what else is selected.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from fetchers import Point
from filters import has_wifi

logger = logging.getLogger(__name__)

MAX_SCORE = 100
MIN_COMPARABLE = 2

_YES = {"yes", "oui", "true", "1"}
_FREE = {"no", "non", "free", "gratuit", "gratuite", "customers"}
_WHEELCHAIR_FULL = {"yes", "designated", "accessible"}
_WHEELCHAIR_PARTIAL = {"limited", "partial", "partiel", "partiellement accessible"}
_PUBLIC_OPERATORS = {"public", "government", "municipal"}
_NON_SMOKING = {"no", "non"}


class SelectionLimitExceeded(Exception):
    """Raised when adding a spot to a full selection."""

    def __init__(self, limit: int):
        super().__init__(f"You can compare at most {limit} spots")
        self.limit = limit


# ── Selection ───────────────────────────────────────────────────────────────

class SelectionSet:
    """Spots picked for comparison, in the order they were picked."""

    def __init__(self, max_size: int = 4):
        self.max_size = max_size
        self._points: list[Point] = []

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    def __contains__(self, point: Point) -> bool:
        return any(p.id == point.id for p in self._points)

    @property
    def ids(self) -> list[str]:
        return [p.id for p in self._points]

    @property
    def is_full(self) -> bool:
        return len(self._points) >= self.max_size

    def toggle(self, point: Point) -> "SelectionSet":
        """Remove `point` if selected, otherwise add it. A full set is left untouched."""
        if point in self:
            self.remove(point)
        elif self.is_full:
            raise SelectionLimitExceeded(self.max_size)
        else:
            self._points.append(point)
        return self

    def remove(self, point: Point) -> None:
        self._points = [p for p in self._points if p.id != point.id]

    def clear(self) -> None:
        self._points = []


# ── Scoring ─────────────────────────────────────────────────────────────────

def _is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() in _YES


def _lower(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def score_breakdown(attributes: Mapping[str, Any]) -> list[tuple[str, int]]:
    """(reason, points) for every criterion the spot earns."""
    reasons: list[tuple[str, int]] = []

    # Wi-Fi: free supersedes plain availability
    if has_wifi(attributes):
        if _lower(attributes.get("wifi_fee")) in _FREE:
            reasons.append(("Free Wi-Fi", 20))
        else:
            reasons.append(("Wi-Fi", 10))

    wheelchair = attributes.get("wheelchair")
    if wheelchair is True or _lower(wheelchair) in _WHEELCHAIR_FULL:
        reasons.append(("Wheelchair accessible", 15))
    elif _lower(wheelchair) in _WHEELCHAIR_PARTIAL:
        reasons.append(("Partial wheelchair access", 8))

    if _is_yes(attributes.get("air_conditioning")):
        reasons.append(("Air conditioning", 10))
    if _is_yes(attributes.get("indoor_seating")):
        reasons.append(("Indoor seating", 10))
    if _is_yes(attributes.get("outdoor_seating")):
        reasons.append(("Outdoor seating", 10))

    if _lower(attributes.get("operator_type")) in _PUBLIC_OPERATORS:
        reasons.append(("Public operator", 5))

    if _lower(attributes.get("smoking")) in _NON_SMOKING:
        reasons.append(("Non-smoking", 10))

    if attributes.get("hours"):
        reasons.append(("Opening hours listed", 5))
    if attributes.get("phone") or attributes.get("email"):
        reasons.append(("Contact available", 5))

    return reasons


def score_point(point: Point) -> int:
    """Score a single spot on a 0-100 scale."""
    total = sum(points for _, points in score_breakdown(point.attributes))
    return min(MAX_SCORE, total)


def best_of(selection: "SelectionSet | list[Point]") -> Optional[tuple[Point, int]]:
    """Highest-scoring spot; ties go to the one selected first."""
    best: Optional[tuple[Point, int]] = None
    for point in selection:
        score = score_point(point)
        if best is None or score > best[1]:
            best = (point, score)
    return best


# ── Comparison ──────────────────────────────────────────────────────────────

@dataclass
class ComparisonRow:
    point: Point
    score: int
    reasons: list[str] = field(default_factory=list)


@dataclass
class Comparison:
    rows: list[ComparisonRow] = field(default_factory=list)
    best: Optional[tuple[Point, int]] = None

    @property
    def insufficient(self) -> bool:
        return len(self.rows) < MIN_COMPARABLE


def compare(selection: "SelectionSet | list[Point]") -> Comparison:
    """Score table plus recommendation; empty when fewer than two spots are selected."""
    points = list(selection)
    if len(points) < MIN_COMPARABLE:
        return Comparison()

    rows = [
        ComparisonRow(
            point=p,
            score=score_point(p),
            reasons=[reason for reason, _ in score_breakdown(p.attributes)],
        )
        for p in points
    ]
    best = best_of(points)
    logger.info(f"Compared {len(rows)} spots, best: {best[0].name} ({best[1]})")
    return Comparison(rows=rows, best=best)
