"""
PyMuPDF-backed source documents.

Why this module exists:
- The pipeline only needs page_count, load_page(), page sizes and render();
  everything MuPDF-specific stays here.
- MuPDF documents are not thread safe, so every call into one document goes
  through a per-document lock.
"""

from __future__ import annotations

from pathlib import Path
import threading
from typing import Optional, Union

import fitz  # PyMuPDF
from PIL import Image

from .render import Viewport
from .utils import DocumentLoadError, UserError


RENDER_INTENTS = {"display", "print"}

_DECODER_LOCK = threading.Lock()
_DECODER_SETTINGS: Optional[dict] = None


def init_decoder(display_errors: bool = False, aa_level: int = 8) -> bool:
    """
    Apply process-wide MuPDF settings once.

    Returns True when this call applied the settings, False when an earlier
    call already did (later arguments are ignored).
    """

    global _DECODER_SETTINGS
    with _DECODER_LOCK:
        if _DECODER_SETTINGS is not None:
            return False
        if not 0 <= aa_level <= 8:
            raise UserError("aa_level must be in the range [0, 8].")
        fitz.TOOLS.mupdf_display_errors(display_errors)
        fitz.TOOLS.set_aa_level(aa_level)
        _DECODER_SETTINGS = {"display_errors": display_errors, "aa_level": aa_level}
        return True


def decoder_settings() -> Optional[dict]:
    """Return the settings applied by init_decoder(), or None."""

    with _DECODER_LOCK:
        return dict(_DECODER_SETTINGS) if _DECODER_SETTINGS is not None else None


class FitzPage:
    """One page of a FitzDocument; width/height are points at unit scale."""

    def __init__(self, page: fitz.Page, lock: threading.Lock):
        self._page = page
        self._lock = lock
        rect = page.rect
        self.width = float(rect.width)
        self.height = float(rect.height)
        self.number = page.number

    def render(self, viewport: Viewport, intent: str = "display") -> Image.Image:
        """
        Paint the viewport onto a new RGB image of exactly viewport size.

        MuPDF paints both intents the same way; the flag is validated so
        callers cannot pass arbitrary values through.
        """

        if intent not in RENDER_INTENTS:
            raise UserError(f"Unknown render intent '{intent}'. Use display or print.")

        scale = viewport.scale
        clip = fitz.Rect(
            viewport.offset_x,
            viewport.offset_y,
            viewport.offset_x + viewport.width / scale,
            viewport.offset_y + viewport.height / scale,
        )
        matrix = fitz.Matrix(scale, scale)
        with self._lock:
            pixmap = self._page.get_pixmap(matrix=matrix, clip=clip, alpha=False)
            rendered = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)

        target = (viewport.width, viewport.height)
        if rendered.size == target:
            return rendered
        # MuPDF rounds the clip outward; pad or trim to the floored size.
        surface = Image.new("RGB", target, "white")
        surface.paste(rendered, (0, 0))
        rendered.close()
        return surface


class FitzDocument:
    """A loaded PDF exposing the page_count / load_page() capability."""

    def __init__(self, doc: fitz.Document, name: str = "<memory>"):
        self._doc = doc
        self._lock = threading.Lock()
        self.name = name

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def load_page(self, index: int) -> FitzPage:
        """Load a page by zero-based index."""

        if not 0 <= index < self.page_count:
            raise UserError(
                f"Page index {index} is out of range. Document has {self.page_count} pages."
            )
        with self._lock:
            page = self._doc.load_page(index)
        return FitzPage(page, self._lock)

    def close(self) -> None:
        with self._lock:
            if not self._doc.is_closed:
                self._doc.close()

    def __enter__(self) -> "FitzDocument":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_document(source: Union[str, Path, bytes]) -> FitzDocument:
    """
    Open a PDF from a path or raw bytes.

    Anything that stops us from reading pages is a DocumentLoadError, raised
    before any page work begins.
    """

    if isinstance(source, (bytes, bytearray)):
        name = "<memory>"
        try:
            doc = fitz.open(stream=bytes(source), filetype="pdf")
        except Exception as exc:
            raise DocumentLoadError(f"Failed to open PDF from memory: {exc}") from exc
    else:
        path = Path(source)
        name = str(path)
        if not path.is_file():
            raise DocumentLoadError(f"PDF not found: {path}")
        try:
            doc = fitz.open(path, filetype="pdf")
        except Exception as exc:
            raise DocumentLoadError(f"Failed to open PDF {path}: {exc}") from exc

    if doc.needs_pass:
        doc.close()
        raise DocumentLoadError(f"PDF is encrypted and needs a password: {name}")
    if doc.page_count <= 0:
        doc.close()
        raise DocumentLoadError(f"PDF has no pages: {name}")
    return FitzDocument(doc, name=name)
