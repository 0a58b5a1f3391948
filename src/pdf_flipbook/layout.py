"""
Group a flat page list into openings for a page-flip book.

Why this module exists:
- Pairing is the step where off-by-one mistakes show up, so it is kept
  small and free of rendering concerns.
- The covers-facing order (back cover and front cover side by side first)
  is a reordering of the list that is fed back into create_book_layout().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .pipeline import RenderedPage
from .utils import InsufficientPagesError


@dataclass
class SpreadPair:
    id: int
    left: Optional[RenderedPage]
    right: Optional[RenderedPage]
    is_cover_spread: bool
    is_last_spread: bool


@dataclass
class BookLayout:
    spreads: List[SpreadPair] = field(default_factory=list)
    total_spreads: int = 0
    total_pages: int = 0
    has_odd_pages: bool = False


@dataclass
class CoversFacingLayout:
    front_cover: RenderedPage
    back_cover: RenderedPage
    inner_pages: List[RenderedPage]
    total_physical_pages: int


@dataclass
class FlipAnimation:
    from_spread: SpreadPair
    to_spread: SpreadPair
    direction: str
    flipping_page: Optional[RenderedPage]


def create_book_layout(pages: Sequence[RenderedPage]) -> BookLayout:
    """
    Pair pages as [0, 1], [2, 3], ... without reordering.

    With an odd count the last pair has no right page.
    """

    spreads: List[SpreadPair] = []
    for start in range(0, len(pages), 2):
        right = pages[start + 1] if start + 1 < len(pages) else None
        spreads.append(
            SpreadPair(
                id=len(spreads),
                left=pages[start],
                right=right,
                is_cover_spread=start == 0,
                is_last_spread=start + 2 >= len(pages),
            )
        )

    return BookLayout(
        spreads=spreads,
        total_spreads=len(spreads),
        total_pages=len(pages),
        has_odd_pages=len(pages) % 2 == 1,
    )


def split_covers(pages: Sequence[RenderedPage]) -> CoversFacingLayout:
    """First page is the front cover, last page the back cover."""

    if len(pages) < 2:
        raise InsufficientPagesError(
            f"Covers-facing layout needs at least 2 pages, got {len(pages)}."
        )
    return CoversFacingLayout(
        front_cover=pages[0],
        back_cover=pages[-1],
        inner_pages=list(pages[1:-1]),
        total_physical_pages=len(pages),
    )


def arrange_for_covers_facing(pages: Sequence[RenderedPage]) -> List[RenderedPage]:
    """
    Reorder to [back cover, front cover, inner pages...].

    Page numbers are left as they were; only the order changes.
    """

    covers = split_covers(pages)
    return [covers.back_cover, covers.front_cover, *covers.inner_pages]


def get_spread_at_index(layout: BookLayout, index: int) -> Optional[SpreadPair]:
    if index < 0 or index >= len(layout.spreads):
        return None
    return layout.spreads[index]


def find_spread_index(layout: BookLayout, page_number: int) -> Optional[int]:
    """Index of the opening that shows page_number, or None."""

    for index, spread in enumerate(layout.spreads):
        if spread.left is not None and spread.left.page_number == page_number:
            return index
        if spread.right is not None and spread.right.page_number == page_number:
            return index
    return None


def calculate_flip_direction(from_index: int, to_index: int) -> str:
    return "forward" if to_index > from_index else "backward"


def calculate_flip_animation(
    layout: BookLayout, from_index: int, to_index: int
) -> Optional[FlipAnimation]:
    """
    Describe a flip between two openings.

    The turning page is the one nearer the direction of travel: the right
    page going forward, the left page going backward.
    """

    from_spread = get_spread_at_index(layout, from_index)
    to_spread = get_spread_at_index(layout, to_index)
    if from_spread is None or to_spread is None:
        return None

    direction = calculate_flip_direction(from_index, to_index)
    flipping_page = from_spread.right if direction == "forward" else from_spread.left
    return FlipAnimation(
        from_spread=from_spread,
        to_spread=to_spread,
        direction=direction,
        flipping_page=flipping_page,
    )


def flatten_for_page_flip(layout: BookLayout) -> List[Optional[RenderedPage]]:
    """Left, right for every opening; an empty trailing right stays None."""

    flat: List[Optional[RenderedPage]] = []
    for spread in layout.spreads:
        flat.append(spread.left)
        flat.append(spread.right)
    return flat


def _page_dict(page: Optional[RenderedPage], filenames: Dict[int, str]) -> Optional[Dict[str, Any]]:
    if page is None:
        return None
    entry: Dict[str, Any] = {
        "page_number": page.page_number,
        "width": page.width,
        "height": page.height,
    }
    if page.page_number in filenames:
        entry["file"] = filenames[page.page_number]
    if page.is_left_half or page.is_right_half:
        entry["half"] = "left" if page.is_left_half else "right"
        entry["original_source_index"] = page.original_source_index
    if page.is_placeholder:
        entry["placeholder"] = True
    return entry


def layout_to_dict(
    layout: BookLayout, filenames: Optional[Dict[int, str]] = None
) -> Dict[str, Any]:
    """JSON-friendly description of a layout, keyed by page numbers."""

    names = filenames or {}
    return {
        "total_spreads": layout.total_spreads,
        "total_pages": layout.total_pages,
        "has_odd_pages": layout.has_odd_pages,
        "spreads": [
            {
                "id": spread.id,
                "left": _page_dict(spread.left, names),
                "right": _page_dict(spread.right, names),
                "is_cover_spread": spread.is_cover_spread,
                "is_last_spread": spread.is_last_spread,
            }
            for spread in layout.spreads
        ],
    }
