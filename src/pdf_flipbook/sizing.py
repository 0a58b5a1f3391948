"""
Fit pages and openings into a display area.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

from .utils import validate_positive_number


@dataclass(frozen=True)
class PageDimensions:
    width: int
    height: int
    scale: float


def fit_page(
    container_width: float,
    container_height: float,
    page_width: float,
    page_height: float,
    is_spread_view: bool = True,
    padding: float = 40,
) -> PageDimensions:
    """
    Size one page for a container, never upscaling past native size.

    In spread view two pages share the width, so each gets half.
    """

    validate_positive_number(page_width, "page width")
    validate_positive_number(page_height, "page height")

    usable_width = container_width - padding * 2
    usable_height = container_height - padding * 2
    if is_spread_view:
        usable_width /= 2

    scale = min(usable_width / page_width, usable_height / page_height, 1.0)
    scale = max(0.0, scale)
    return PageDimensions(
        width=math.floor(page_width * scale),
        height=math.floor(page_height * scale),
        scale=scale,
    )


def fit_opening(
    container_width: float,
    container_height: float,
    page_width: float,
    page_height: float,
    padding: float = 100,
    min_size: float = 300,
    fallback_height: float = 600,
) -> PageDimensions:
    """
    Size one page so the whole two-page opening fits the container.

    Tries the width-bound size first and falls back to the height-bound one
    when it would be too tall. Each axis is clamped to min_size; an
    unmeasured (zero) container gets fallback_height at the page ratio.
    """

    validate_positive_number(page_width, "page width")
    validate_positive_number(page_height, "page height")
    ratio = page_width / page_height

    if container_width <= 0 or container_height <= 0:
        width = math.floor(fallback_height * ratio)
        height = math.floor(fallback_height)
        return PageDimensions(width=width, height=height, scale=width / page_width)

    available_width = container_width - padding
    available_height = container_height - padding

    width_bound = available_width / 2
    height_for_width = width_bound / ratio
    if height_for_width <= available_height:
        width, height = width_bound, height_for_width
    else:
        width, height = available_height * ratio, available_height

    width = math.floor(max(width, min_size))
    height = math.floor(max(height, min_size))
    return PageDimensions(width=width, height=height, scale=width / page_width)
