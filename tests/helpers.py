"""
Shared fakes and helpers for pdf-flipbook tests.

The fake document implements the same capability the pipeline needs from
PyMuPDF (page_count, load_page, width/height, render) without decoding
anything, so pipeline tests are fast and deterministic.
"""

from __future__ import annotations

import io
import shutil
import sys
import time
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from pathlib import Path
from typing import Iterable, List, Optional
from uuid import uuid4


SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


class FakeRaster:
    """Stands in for a PIL image; counts close() calls."""

    def __init__(self, width: int, height: int):
        self.size = (width, height)
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def close(self) -> None:
        self.close_calls += 1


class FakePage:
    def __init__(
        self,
        width: float,
        height: float,
        fail: bool = False,
        fail_right_half: bool = False,
        delay: float = 0.0,
    ):
        self.width = width
        self.height = height
        self.fail = fail
        self.fail_right_half = fail_right_half
        self.delay = delay
        self.viewports = []
        self.rendered: List[FakeRaster] = []

    def render(self, viewport, intent: str = "display") -> FakeRaster:
        if self.delay:
            time.sleep(self.delay)
        self.viewports.append(viewport)
        if self.fail or (self.fail_right_half and viewport.offset_x > 0):
            raise RuntimeError("corrupt content stream")
        raster = FakeRaster(viewport.width, viewport.height)
        self.rendered.append(raster)
        return raster


class FakeDocument:
    def __init__(self, pages: Iterable[FakePage]):
        self.pages = list(pages)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def load_page(self, index: int) -> FakePage:
        return self.pages[index]

    def all_rasters(self) -> List[FakeRaster]:
        return [raster for page in self.pages for raster in page.rendered]


def portrait_pages(count: int, width: float = 500, height: float = 700) -> List[FakePage]:
    return [FakePage(width, height) for _ in range(count)]


def make_pdf_bytes(sizes: Iterable[tuple], red_left_half: bool = True) -> Optional[bytes]:
    """Build a small PDF with PyMuPDF; returns None when PyMuPDF is missing."""

    try:
        import fitz
    except ModuleNotFoundError:
        return None

    doc = fitz.open()
    for width, height in sizes:
        page = doc.new_page(width=width, height=height)
        if red_left_half:
            page.draw_rect(
                fitz.Rect(0, 0, width / 2, height), color=(1, 0, 0), fill=(1, 0, 0)
            )
    data = doc.tobytes()
    doc.close()
    return data


@contextmanager
def workspace_temp_dir(label: str = "test"):
    root = Path(__file__).resolve().parents[1] / ".tmp_tests"
    root.mkdir(parents=True, exist_ok=True)
    tmp = root / f"{label}_{uuid4().hex}"
    tmp.mkdir(parents=True, exist_ok=False)
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


def _normalize_exit_code(value: object) -> int:
    """Normalize return values/SystemExit payloads into process-style int codes."""

    if value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


def run_cli(argv: list[str]) -> tuple[int, str, str]:
    """
    Run the pdf-flipbook CLI in-process with captured stdio.

    Returns: (exit_code, stdout_text, stderr_text)
    """

    from pdf_flipbook.cli import main

    stdout_stream = io.StringIO()
    stderr_stream = io.StringIO()
    with redirect_stdout(stdout_stream), redirect_stderr(stderr_stream):
        try:
            exit_code = _normalize_exit_code(main(argv))
        except SystemExit as exc:
            exit_code = _normalize_exit_code(exc.code)
    return exit_code, stdout_stream.getvalue(), stderr_stream.getvalue()
