"""
Tests for pairing pages into openings and covers-facing order.
"""

from __future__ import annotations

import math
import unittest

import helpers  # noqa: F401  (puts src/ on sys.path)

from pdf_flipbook.layout import (
    arrange_for_covers_facing,
    calculate_flip_animation,
    create_book_layout,
    find_spread_index,
    flatten_for_page_flip,
    layout_to_dict,
    split_covers,
)
from pdf_flipbook.pipeline import RenderedPage
from pdf_flipbook.utils import InsufficientPagesError


def _pages(count: int) -> list[RenderedPage]:
    return [
        RenderedPage(page_number=number, image=None, width=100, height=140)
        for number in range(1, count + 1)
    ]


class CreateBookLayoutTests(unittest.TestCase):
    def test_pair_counts_and_trailing_gap(self) -> None:
        for count in range(1, 10):
            pages = _pages(count)
            layout = create_book_layout(pages)
            self.assertEqual(layout.total_spreads, math.ceil(count / 2))
            self.assertEqual(layout.total_pages, count)
            self.assertEqual(layout.has_odd_pages, count % 2 == 1)
            for spread in layout.spreads[:-1]:
                self.assertIsNotNone(spread.left)
                self.assertIsNotNone(spread.right)
            self.assertEqual(layout.spreads[-1].right is None, count % 2 == 1)

            flattened = [page for page in flatten_for_page_flip(layout) if page is not None]
            self.assertEqual(flattened, pages)

    def test_cover_and_last_flags(self) -> None:
        layout = create_book_layout(_pages(6))
        self.assertEqual([s.is_cover_spread for s in layout.spreads], [True, False, False])
        self.assertEqual([s.is_last_spread for s in layout.spreads], [False, False, True])
        self.assertEqual([s.id for s in layout.spreads], [0, 1, 2])

    def test_empty_and_single_page(self) -> None:
        empty = create_book_layout([])
        self.assertEqual(empty.spreads, [])
        self.assertEqual(empty.total_spreads, 0)
        self.assertFalse(empty.has_odd_pages)

        pages = _pages(1)
        single = create_book_layout(pages)
        self.assertEqual(single.total_spreads, 1)
        spread = single.spreads[0]
        self.assertIs(spread.left, pages[0])
        self.assertIsNone(spread.right)
        self.assertTrue(spread.is_cover_spread)
        self.assertTrue(spread.is_last_spread)


class CoversFacingTests(unittest.TestCase):
    def test_back_cover_then_front_cover(self) -> None:
        p1, p2, p3, p4 = _pages(4)
        self.assertEqual(arrange_for_covers_facing([p1, p2, p3, p4]), [p4, p1, p2, p3])

    def test_two_pages_swap(self) -> None:
        p1, p2 = _pages(2)
        self.assertEqual(arrange_for_covers_facing([p1, p2]), [p2, p1])

    def test_needs_two_pages(self) -> None:
        with self.assertRaises(InsufficientPagesError):
            arrange_for_covers_facing(_pages(1))
        with self.assertRaises(InsufficientPagesError):
            arrange_for_covers_facing([])

    def test_split_covers(self) -> None:
        pages = _pages(5)
        covers = split_covers(pages)
        self.assertIs(covers.front_cover, pages[0])
        self.assertIs(covers.back_cover, pages[-1])
        self.assertEqual(covers.inner_pages, pages[1:4])
        self.assertEqual(covers.total_physical_pages, 5)

    def test_covers_facing_layout_opens_on_both_covers(self) -> None:
        pages = _pages(5)
        layout = create_book_layout(arrange_for_covers_facing(pages))
        first = layout.spreads[0]
        self.assertEqual((first.left.page_number, first.right.page_number), (5, 1))
        self.assertIsNone(layout.spreads[-1].right)


class NavigationTests(unittest.TestCase):
    def test_find_spread_index(self) -> None:
        layout = create_book_layout(_pages(5))
        self.assertEqual(find_spread_index(layout, 1), 0)
        self.assertEqual(find_spread_index(layout, 4), 1)
        self.assertEqual(find_spread_index(layout, 5), 2)
        self.assertIsNone(find_spread_index(layout, 6))

    def test_forward_flip_turns_right_page(self) -> None:
        layout = create_book_layout(_pages(4))
        flip = calculate_flip_animation(layout, 0, 1)
        self.assertEqual(flip.direction, "forward")
        self.assertIs(flip.flipping_page, layout.spreads[0].right)
        self.assertIs(flip.to_spread, layout.spreads[1])

    def test_backward_flip_turns_left_page(self) -> None:
        layout = create_book_layout(_pages(4))
        flip = calculate_flip_animation(layout, 1, 0)
        self.assertEqual(flip.direction, "backward")
        self.assertIs(flip.flipping_page, layout.spreads[1].left)

    def test_out_of_bounds_gives_none(self) -> None:
        layout = create_book_layout(_pages(4))
        self.assertIsNone(calculate_flip_animation(layout, 0, 2))
        self.assertIsNone(calculate_flip_animation(layout, -1, 0))


class LayoutDictTests(unittest.TestCase):
    def test_layout_to_dict_uses_page_numbers_and_files(self) -> None:
        pages = _pages(3)
        pages[1].is_left_half = True
        pages[1].original_source_index = 2
        document = layout_to_dict(create_book_layout(pages), {1: "a.jpg", 2: "b.jpg", 3: "c.jpg"})
        self.assertEqual(document["total_pages"], 3)
        self.assertEqual(document["spreads"][0]["left"]["file"], "a.jpg")
        self.assertEqual(document["spreads"][0]["right"]["half"], "left")
        self.assertIsNone(document["spreads"][1]["right"])


if __name__ == "__main__":
    unittest.main()
