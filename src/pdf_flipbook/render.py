"""
Rasterize one page (or a crop of it) at a target DPI.

Why this module exists:
- Keeps the DPI/max-size arithmetic separate from the decoding library.
- The same geometry is used for real renders and for placeholder pages.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Optional

from .config import ProcessingConfig
from .utils import PageRenderError, UserError, validate_positive_number


# PDF user space is 72 units per inch.
PDF_UNITS_PER_INCH = 72.0


@dataclass(frozen=True)
class CropRegion:
    """A rectangle in unscaled page units."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Viewport:
    """
    What a page handle is asked to paint.

    width/height are the pixel size of the drawing surface; offset_x/offset_y
    are the crop origin in page units, so content is translated by
    -offset * scale before painting.
    """

    scale: float
    width: int
    height: int
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass(frozen=True)
class RenderGeometry:
    scale: float
    width: int
    height: int


@dataclass
class RasterImage:
    """A rendered bitmap plus the scale it was rendered at."""

    image: Any
    width: int
    height: int
    scale: float


def compute_geometry(
    page_width: float,
    page_height: float,
    config: ProcessingConfig,
    crop: Optional[CropRegion] = None,
) -> RenderGeometry:
    """
    Work out the final scale and pixel size for a render.

    The max-size fit shrinks the scale itself, so the viewport built from it
    paints content at the reduced resolution instead of being cut off.
    """

    validate_positive_number(page_width, "page width")
    validate_positive_number(page_height, "page height")

    scale = config.dpi / PDF_UNITS_PER_INCH
    source_width = crop.width if crop is not None else page_width
    source_height = crop.height if crop is not None else page_height
    if source_width <= 0 or source_height <= 0:
        raise UserError("Crop region must have a positive width and height.")

    target_width = source_width * scale
    target_height = source_height * scale

    if target_width > config.max_width or target_height > config.max_height:
        fit_ratio = min(config.max_width / target_width, config.max_height / target_height)
        target_width *= fit_ratio
        target_height *= fit_ratio
        scale *= fit_ratio

    return RenderGeometry(
        scale=scale,
        width=max(1, math.floor(target_width)),
        height=max(1, math.floor(target_height)),
    )


def build_viewport(geometry: RenderGeometry, crop: Optional[CropRegion] = None) -> Viewport:
    if crop is None:
        return Viewport(scale=geometry.scale, width=geometry.width, height=geometry.height)
    return Viewport(
        scale=geometry.scale,
        width=geometry.width,
        height=geometry.height,
        offset_x=crop.x,
        offset_y=crop.y,
    )


def rasterize(
    page: Any,
    config: ProcessingConfig,
    crop: Optional[CropRegion] = None,
    source_index: Optional[int] = None,
    stage: str = "render",
) -> RasterImage:
    """
    Render a page handle to a raster at config.dpi, bounded by max size.

    Decoding failures come back as PageRenderError; nothing is retried
    because the same input fails the same way every time.
    """

    geometry = compute_geometry(page.width, page.height, config, crop)
    viewport = build_viewport(geometry, crop)
    try:
        image = page.render(viewport, intent="display")
    except PageRenderError:
        raise
    except Exception as exc:
        where = f"page {source_index}" if source_index is not None else "page"
        raise PageRenderError(
            f"Failed to render {where} ({stage}): {exc}",
            source_index=source_index,
            stage=stage,
        ) from exc

    return RasterImage(
        image=image,
        width=geometry.width,
        height=geometry.height,
        scale=geometry.scale,
    )
