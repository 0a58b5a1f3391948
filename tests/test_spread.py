"""
Unit tests for spread detection, cover-relative classification and splitting.
"""

from __future__ import annotations

import math
import unittest

from helpers import FakePage

from pdf_flipbook.config import ProcessingConfig
from pdf_flipbook.spread import (
    classify_pages,
    detect_spread,
    is_spread_against_cover,
    page_info,
    split_spread_page,
)
from pdf_flipbook.utils import PageRenderError, UserError


class DetectSpreadTests(unittest.TestCase):
    def test_is_spread_matches_ratio_threshold(self) -> None:
        for width in (100, 595, 842, 1190, 1684):
            for height in (100, 421, 595, 842):
                for threshold in (1.01, 1.2, 1.5, 1.8, 2.5):
                    decision = detect_spread(width, height, threshold)
                    self.assertEqual(decision.is_spread, width / height >= threshold)
                    self.assertGreaterEqual(decision.confidence, 0.0)
                    self.assertLessEqual(decision.confidence, 1.0)

    def test_portrait_single_page_has_full_confidence(self) -> None:
        decision = detect_spread(700, 1000, 1.2)
        self.assertFalse(decision.is_spread)
        self.assertAlmostEqual(decision.aspect_ratio, 0.7)
        self.assertAlmostEqual(decision.confidence, 1.0)

    def test_double_wide_page_is_recommended_split(self) -> None:
        decision = detect_spread(1400, 700, 1.2)
        self.assertTrue(decision.is_spread)
        self.assertTrue(decision.recommended_split)
        self.assertAlmostEqual(decision.confidence, 1.0)

    def test_mild_spread_is_not_recommended_split(self) -> None:
        decision = detect_spread(1300, 1000, 1.2)
        self.assertTrue(decision.is_spread)
        self.assertFalse(decision.recommended_split)
        self.assertAlmostEqual(decision.confidence, (1.3 - 1.2) / 0.8)

    def test_rejects_non_finite_and_invalid_inputs(self) -> None:
        for width, height in ((math.nan, 100), (100, math.inf), (100, 0), (-5, 10)):
            with self.assertRaises(UserError):
                detect_spread(width, height, 1.2)
        with self.assertRaises(UserError):
            detect_spread(100, 100, 1.0)

    def test_page_info_respects_split_switch(self) -> None:
        page = FakePage(1200, 600)
        self.assertTrue(page_info(page, 3, ProcessingConfig()).is_spread)
        info = page_info(page, 3, ProcessingConfig(enable_spread_split=False))
        self.assertFalse(info.is_spread)
        self.assertEqual(info.page_number, 4)
        self.assertEqual(info.original_index, 3)


class CoverClassificationTests(unittest.TestCase):
    def test_rules_against_portrait_cover(self) -> None:
        config = ProcessingConfig()
        cover = 0.7
        self.assertTrue(is_spread_against_cover(1.4, cover, config))
        self.assertTrue(is_spread_against_cover(1.22, cover, config))
        self.assertFalse(is_spread_against_cover(1.1, cover, config))
        self.assertFalse(is_spread_against_cover(0.7, cover, config))

    def test_first_page_is_never_split_by_default(self) -> None:
        baseline, flags = classify_pages([2.0, 2.0, 2.0], ProcessingConfig())
        self.assertEqual(baseline, 2.0)
        self.assertEqual(flags, [False, False, False])

    def test_cover_may_be_spread_halves_baseline(self) -> None:
        config = ProcessingConfig(cover_may_be_spread=True)
        baseline, flags = classify_pages([2.0, 2.0, 1.0], config)
        self.assertEqual(baseline, 1.0)
        self.assertEqual(flags, [True, True, False])

    def test_cover_may_be_spread_keeps_portrait_cover(self) -> None:
        config = ProcessingConfig(cover_may_be_spread=True)
        _, flags = classify_pages([0.7, 1.4, 0.7], config)
        self.assertEqual(flags, [False, True, False])

    def test_cover_below_raised_threshold_is_not_split(self) -> None:
        config = ProcessingConfig(cover_may_be_spread=True, spread_threshold=1.9)
        self.assertFalse(detect_spread(1.85, 1.0, 1.9).recommended_split)
        baseline, flags = classify_pages([1.85, 0.7], config)
        self.assertEqual(baseline, 1.85)
        self.assertEqual(flags, [False, False])

        baseline, flags = classify_pages([2.0, 0.7], config)
        self.assertEqual(baseline, 1.0)
        self.assertEqual(flags, [True, False])

    def test_disabled_split_never_classifies(self) -> None:
        config = ProcessingConfig(enable_spread_split=False, cover_may_be_spread=True)
        _, flags = classify_pages([2.0, 1.4, 3.0], config)
        self.assertEqual(flags, [False, False, False])


class SplitSpreadPageTests(unittest.TestCase):
    def test_halves_have_floor_sizes_and_no_gap(self) -> None:
        page = FakePage(595, 421)
        config = ProcessingConfig(dpi=150)
        left, right = split_spread_page(page, config)

        scale = 150 / 72
        self.assertEqual(left.width, math.floor((595 / 2) * scale))
        self.assertEqual(right.width, left.width)
        self.assertEqual(left.height, math.floor(421 * scale))
        self.assertEqual(right.height, left.height)

        left_view, right_view = page.viewports
        self.assertEqual((left_view.offset_x, left_view.offset_y), (0.0, 0.0))
        self.assertEqual((right_view.offset_x, right_view.offset_y), (297.5, 0.0))

    def test_right_half_failure_releases_left_half(self) -> None:
        page = FakePage(1000, 500, fail_right_half=True)
        with self.assertRaises(PageRenderError) as ctx:
            split_spread_page(page, ProcessingConfig(), source_index=7)
        self.assertEqual(ctx.exception.source_index, 7)
        self.assertEqual(ctx.exception.stage, "split-right")
        self.assertEqual(len(page.rendered), 1)
        self.assertTrue(page.rendered[0].closed)


if __name__ == "__main__":
    unittest.main()
