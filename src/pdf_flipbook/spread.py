"""
Detect spread pages and split them into left/right halves.

Why this module exists:
- Spread detection is a pure aspect-ratio heuristic, easy to test alone.
- Classification against the cover is an explicit two-step procedure: take
  the baseline ratio from page 1, then judge every page (page 1 included)
  against it.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, List, Optional, Sequence, Tuple

from .config import ProcessingConfig
from .render import CropRegion, RasterImage, rasterize
from .utils import UserError, clamp01


# A true double-wide page is 2:1; at 1.8 a split is strongly recommended.
RECOMMENDED_SPLIT_RATIO = 1.8
DOUBLE_PAGE_RATIO = 2.0
# Canonical single portrait page (width / height).
SINGLE_PAGE_RATIO = 0.7

# Page-vs-cover multipliers used by the pipeline.
COVER_STRONG_FACTOR = 1.8
COVER_WEAK_FACTOR = 1.5


@dataclass(frozen=True)
class SpreadDecision:
    is_spread: bool
    aspect_ratio: float
    recommended_split: bool
    confidence: float


@dataclass(frozen=True)
class PageInfo:
    """Size and spread facts for one source page (page_number is 1-based)."""

    page_number: int
    width: float
    height: float
    aspect_ratio: float
    is_spread: bool
    original_index: int


def _require_finite(value: float, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise UserError(f"{label} must be a finite number.")
    return float(value)


def aspect_ratio(width: float, height: float) -> float:
    """width / height for positive, finite sizes."""

    width = _require_finite(width, "width")
    height = _require_finite(height, "height")
    if width <= 0 or height <= 0:
        raise UserError("Page width and height must be > 0.")
    return width / height


def detect_spread(width: float, height: float, threshold: float = 1.2) -> SpreadDecision:
    """
    Decide whether a width x height page looks like two pages side by side.

    Confidence grows toward 1 as a spread approaches 2:1, and as a single
    page approaches the 0.7 portrait ratio.
    """

    threshold = _require_finite(threshold, "threshold")
    if threshold <= 1.0:
        raise UserError("Spread threshold must be > 1.0.")
    ratio = aspect_ratio(width, height)
    is_spread = ratio >= threshold

    if is_spread:
        span = DOUBLE_PAGE_RATIO - threshold
        confidence = clamp01((ratio - threshold) / span) if span > 0 else 1.0
    else:
        confidence = clamp01(1 - abs(ratio - SINGLE_PAGE_RATIO) / SINGLE_PAGE_RATIO)

    return SpreadDecision(
        is_spread=is_spread,
        aspect_ratio=ratio,
        recommended_split=is_spread and ratio >= RECOMMENDED_SPLIT_RATIO,
        confidence=confidence,
    )


def page_info(page: Any, index: int, config: ProcessingConfig) -> PageInfo:
    """Describe a page with the plain detector (no cover comparison)."""

    decision = detect_spread(page.width, page.height, config.spread_threshold)
    return PageInfo(
        page_number=index + 1,
        width=page.width,
        height=page.height,
        aspect_ratio=decision.aspect_ratio,
        is_spread=decision.is_spread and config.enable_spread_split,
        original_index=index,
    )


def is_spread_against_cover(
    ratio: float, cover_ratio: float, config: ProcessingConfig
) -> bool:
    """Classify one page ratio against the cover baseline."""

    if not config.enable_spread_split:
        return False
    if ratio >= cover_ratio * COVER_STRONG_FACTOR:
        return True
    return ratio >= config.spread_threshold and ratio >= cover_ratio * COVER_WEAK_FACTOR


def classify_pages(
    ratios: Sequence[float], config: ProcessingConfig
) -> Tuple[float, List[bool]]:
    """
    Return (baseline ratio, per-page spread flags) for a whole document.

    By default page 1 is its own baseline, so it can never be a spread.
    With cover_may_be_spread, page 1 splits when the detector recommends it
    (a spread at the threshold and at least 1.8:1) and the other pages are
    judged against half of it.
    """

    if not ratios:
        return 0.0, []

    cover_ratio = ratios[0]
    cover_is_spread = (
        config.enable_spread_split
        and config.cover_may_be_spread
        and detect_spread(cover_ratio, 1.0, config.spread_threshold).recommended_split
    )
    baseline = cover_ratio / 2 if cover_is_spread else cover_ratio

    flags = [is_spread_against_cover(ratio, baseline, config) for ratio in ratios]
    if config.cover_may_be_spread:
        flags[0] = cover_is_spread
    return baseline, flags


def split_regions(width: float, height: float) -> Tuple[CropRegion, CropRegion]:
    """Left and right halves with no overlap or gap, both full height."""

    half_width = width / 2
    left = CropRegion(x=0.0, y=0.0, width=half_width, height=height)
    right = CropRegion(x=half_width, y=0.0, width=half_width, height=height)
    return left, right


def split_spread_page(
    page: Any, config: ProcessingConfig, source_index: Optional[int] = None
) -> Tuple[RasterImage, RasterImage]:
    """Render the left and right halves of a spread page."""

    left_region, right_region = split_regions(page.width, page.height)
    left = rasterize(page, config, left_region, source_index=source_index, stage="split-left")
    try:
        right = rasterize(
            page, config, right_region, source_index=source_index, stage="split-right"
        )
    except Exception:
        left.image.close()
        raise
    return left, right
