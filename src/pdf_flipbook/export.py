"""
Write rendered pages and the book layout to a folder.

Why this module exists:
- Keeps file naming and encoding separate from processing, so the
  pipeline never touches the filesystem.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .layout import BookLayout, layout_to_dict
from .manifest import ManifestRecorder
from .pipeline import RenderedPage
from .utils import UserError, ensure_dir


IMAGE_FORMATS = {"jpeg": "jpg", "png": "png"}
LAYOUT_FILENAME = "layout.json"


def _compute_page_digits(page_numbers: List[int]) -> int:
    """
    Decide how many zero-padding digits to use for page numbers.

    Why: we want stable, sortable filenames like p0001, p0002, etc.
    """

    if not page_numbers:
        return 4
    max_page = max(page_numbers)
    return max(4, len(str(max_page)))


def page_filenames(
    pages: Sequence[RenderedPage], prefix: str, image_format: str
) -> Dict[int, str]:
    """Map page_number -> output filename."""

    if image_format not in IMAGE_FORMATS:
        raise UserError("image_format must be one of: jpeg, png.")
    extension = IMAGE_FORMATS[image_format]
    digits = _compute_page_digits([page.page_number for page in pages])
    return {
        page.page_number: f"{prefix}_p{page.page_number:0{digits}d}.{extension}"
        for page in pages
    }


def write_book(
    pages: Sequence[RenderedPage],
    layout: BookLayout,
    out_dir: Path,
    prefix: str,
    image_format: str = "jpeg",
    jpeg_quality: int = 92,
    overwrite: bool = False,
    dry_run: bool = False,
    covers_facing: bool = False,
    recorder: Optional[ManifestRecorder] = None,
) -> Dict[str, int]:
    """
    Save every page image plus layout.json into out_dir.

    Pages are written in page-number order regardless of layout order.
    Returns counts of written/skipped/dry-run files.
    """

    if not 1 <= jpeg_quality <= 100:
        raise UserError("jpeg_quality must be in the range [1, 100].")
    filenames = page_filenames(pages, prefix, image_format)
    counts = {"written": 0, "skipped": 0, "dry-run": 0}

    def _log(message: str, level: str = "info") -> None:
        if recorder is not None:
            recorder.log(message, level=level)

    def _action(action: str, status: str, **details) -> None:
        counts[status] = counts.get(status, 0) + 1
        if recorder is not None:
            recorder.add_action(action=action, status=status, **details)

    ensure_dir(out_dir, dry_run=dry_run)

    for page in sorted(pages, key=lambda item: item.page_number):
        output_path = out_dir / filenames[page.page_number]
        if dry_run:
            _log(f"[dry-run] Would write page {page.page_number} -> {output_path}")
            _action("write_page", "dry-run", page=page.page_number, output=str(output_path))
            continue
        if output_path.exists() and not overwrite:
            _log(f"Skipping existing file: {output_path}")
            _action("write_page", "skipped", page=page.page_number, output=str(output_path))
            continue
        if page.image is None:
            raise UserError(f"Page {page.page_number} was already released; cannot write it.")

        try:
            if image_format == "jpeg":
                with page.image.convert("RGB") as rgb:
                    rgb.save(output_path, "JPEG", quality=jpeg_quality)
            else:
                page.image.save(output_path, "PNG")
        except OSError as exc:
            raise UserError(f"Failed to write {output_path}: {exc}") from exc
        _log(f"Wrote page {page.page_number} -> {output_path}", level="debug")
        _action("write_page", "written", page=page.page_number, output=str(output_path))

    layout_path = out_dir / LAYOUT_FILENAME
    document = layout_to_dict(layout, filenames)
    document["covers_facing"] = covers_facing
    if dry_run:
        _log(f"[dry-run] Would write layout to {layout_path}")
        _action("write_layout", "dry-run", output=str(layout_path))
    elif layout_path.exists() and not overwrite:
        _log(f"Skipping existing file: {layout_path}")
        _action("write_layout", "skipped", output=str(layout_path))
    else:
        with layout_path.open("w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2, ensure_ascii=True)
        _action("write_layout", "written", output=str(layout_path))

    return counts
