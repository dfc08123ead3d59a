"""
"Load more" pagination for the list of filtered spots.
"""

from dataclasses import dataclass, replace
from typing import Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PaginationState:
    revealed_count: int
    page_size: int

    @classmethod
    def first_page(cls, page_size: int) -> "PaginationState":
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        return cls(revealed_count=page_size, page_size=page_size)


def visible_page(items: Sequence[T], state: PaginationState) -> list[T]:
    """Revealed prefix; a count past the end just returns everything."""
    return list(items[: max(0, state.revealed_count)])


def load_more(state: PaginationState) -> PaginationState:
    return replace(state, revealed_count=state.revealed_count + state.page_size)


def reset_on_filter_change(state: PaginationState) -> PaginationState:
    return replace(state, revealed_count=state.page_size)


def has_more(items: Sequence, state: PaginationState) -> bool:
    return state.revealed_count < len(items)
