"""
Build a flip book folder from a PDF.

Why this module exists:
- Ties document loading, page processing, layout and export together for
  the CLI, and records everything in one manifest.
- Guarantees rasters are released however the run ends.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from .config import ProcessingConfig
from .document import init_decoder, open_document
from .export import write_book
from .layout import arrange_for_covers_facing, create_book_layout
from .manifest import ManifestRecorder
from .pipeline import RenderedPage, process_document, release_pages
from .utils import UserError, ensure_file_exists


def build_book(
    pdf_path: Path,
    out_dir: Path,
    config: ProcessingConfig,
    prefix: str,
    image_format: str,
    jpeg_quality: int,
    covers_facing: bool,
    overwrite: bool,
    dry_run: bool,
    manifest_path: Path,
    command_string: str,
    options: Dict[str, Any],
) -> None:
    """
    Render pdf_path into out_dir as page images plus layout.json.

    The PDF is opened once, processed in source order, optionally rearranged
    covers-facing, then written out.
    """

    recorder = ManifestRecorder(
        tool_name="pdf-flipbook",
        tool_version=str(options.get("version", "0.0.0")),
        command=command_string,
        options=options,
        inputs={"pdf": str(pdf_path)},
        outputs={"out_dir": str(out_dir), "manifest": str(manifest_path)},
        dry_run=dry_run,
        verbosity=str(options.get("verbosity", "normal")),
    )

    pages: List[RenderedPage] = []
    source_pages = 0
    error_message: str | None = None
    summary: Dict[str, Any] = {
        "dpi": config.dpi,
        "covers_facing": covers_facing,
        "format": image_format,
        "output_dir": str(out_dir),
    }

    try:
        ensure_file_exists(pdf_path, "PDF")
        init_decoder()

        with open_document(pdf_path) as document:
            source_pages = document.page_count
            recorder.inputs["page_count"] = source_pages
            pages = process_document(
                document,
                config,
                on_progress=recorder.progress_callback(),
                recorder=recorder,
            )

        ordered = arrange_for_covers_facing(pages) if covers_facing else list(pages)
        layout = create_book_layout(ordered)
        recorder.log(
            f"Laid out {layout.total_pages} page(s) from {source_pages} source page(s) "
            f"into {layout.total_spreads} opening(s)."
        )

        counts = write_book(
            pages=ordered,
            layout=layout,
            out_dir=out_dir,
            prefix=prefix,
            image_format=image_format,
            jpeg_quality=jpeg_quality,
            overwrite=overwrite,
            dry_run=dry_run,
            covers_facing=covers_facing,
            recorder=recorder,
        )
        summary["files"] = counts
        summary["total_spreads"] = layout.total_spreads
        summary["has_odd_pages"] = layout.has_odd_pages
    except Exception as exc:
        if isinstance(exc, UserError):
            error_message = str(exc)
        else:
            error_message = f"Failed to build book from {pdf_path}: {exc}"
        recorder.log(error_message, level="error")
        recorder.add_action(action="build", status="error", error=error_message)
        if isinstance(exc, UserError):
            raise
        raise UserError(error_message) from exc
    finally:
        summary["source_pages"] = source_pages
        summary["book_pages"] = len(pages)
        summary["split_pages"] = sum(1 for page in pages if page.is_left_half)
        summary["placeholders"] = sum(1 for page in pages if page.is_placeholder)
        summary["status"] = "error" if error_message else "ok"
        if error_message is not None:
            summary["error"] = error_message
        release_pages(pages)
        recorder.write_manifest(manifest_path, summary)
