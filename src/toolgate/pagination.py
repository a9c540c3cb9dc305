"""Fixed-size paging over result lists and file text."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: list[T]
    page_number: int
    has_next_page: bool
    has_prev_page: bool
    items_remaining: int


def page_bounds(page_size: int, page_number: int) -> tuple[int, int]:
    """Half-open [start, end) offsets of a 1-based page."""
    if page_number < 1:
        raise ValueError(f"Page number must be 1 or greater, got {page_number}")
    return page_size * (page_number - 1), page_size * page_number


def paginate(items: Sequence[T], page_size: int, page_number: int) -> Page[T]:
    start, end = page_bounds(page_size, page_number)
    remaining = max(0, len(items) - end)
    return Page(
        items=list(items[start:end]),
        page_number=page_number,
        has_next_page=remaining >= 1,
        has_prev_page=page_number > 1,
        items_remaining=remaining,
    )


def paginate_text(text: str, page_chars: int, page_number: int) -> tuple[str, bool]:
    """Slice text by character offset. Returns (page_text, has_next_page)."""
    start, end = page_bounds(page_chars, page_number)
    return text[start:end], len(text) - end >= 1
