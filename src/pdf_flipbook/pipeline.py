"""
Turn every page of a source document into an ordered list of rasters.

Why this module exists:
- Keeps the run-level rules in one place: classify first, render second,
  number last.
- Owns the raster lifetime rules. Whatever a run produced is either handed
  to the caller as a complete list or released before the error propagates.

Page numbers depend only on source order and the split decision. Renders may
finish in any order when workers > 1; results land in preallocated per-page
slots and are flattened once every slot is filled.
"""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
import threading
from typing import Any, Callable, Iterable, List, Optional

from PIL import Image

from .config import ProcessingConfig
from .manifest import ManifestRecorder
from .render import RasterImage, compute_geometry, rasterize
from .spread import aspect_ratio, classify_pages, split_regions, split_spread_page
from .utils import DocumentLoadError, PageRenderError, ProcessingCancelled


ProgressCallback = Callable[[float], None]


@dataclass
class RenderedPage:
    """
    One output page.

    The caller owns image and must call release() (or release_pages()) once
    it is done with the list.
    """

    page_number: int
    image: Any
    width: int
    height: int
    is_left_half: bool = False
    is_right_half: bool = False
    original_source_index: Optional[int] = None
    is_placeholder: bool = False

    @property
    def released(self) -> bool:
        return self.image is None

    def release(self) -> None:
        """Close the raster. Calling this twice is a no-op."""

        image, self.image = self.image, None
        if image is not None:
            image.close()


@dataclass
class _Raster:
    """A finished raster waiting for its page number."""

    raster: RasterImage
    side: Optional[str] = None
    placeholder: bool = False


def release_pages(pages: Iterable[RenderedPage]) -> None:
    """Release every raster in pages. Safe on empty lists and on repeats."""

    for page in pages:
        page.release()


def _release_slots(slots: List[Optional[List[_Raster]]]) -> None:
    for slot in slots:
        for item in slot or []:
            item.raster.image.close()


def _placeholder_rasters(page: Any, config: ProcessingConfig, split: bool) -> List[_Raster]:
    """Blank white rasters sized like the real render would have been."""

    if split:
        regions = split_regions(page.width, page.height)
        sides = ["left", "right"]
    else:
        regions = (None,)
        sides = [None]

    rasters: List[_Raster] = []
    for region, side in zip(regions, sides):
        geometry = compute_geometry(page.width, page.height, config, region)
        image = Image.new("RGB", (geometry.width, geometry.height), "white")
        raster = RasterImage(
            image=image, width=geometry.width, height=geometry.height, scale=geometry.scale
        )
        rasters.append(_Raster(raster=raster, side=side, placeholder=True))
    return rasters


class _Run:
    """State for one process_document() call; nothing is shared across runs."""

    def __init__(
        self,
        pages: List[Any],
        split_flags: List[bool],
        config: ProcessingConfig,
        on_progress: Optional[ProgressCallback],
        recorder: Optional[ManifestRecorder],
        cancel_event: Optional[threading.Event],
    ):
        self.pages = pages
        self.split_flags = split_flags
        self.config = config
        self.on_progress = on_progress
        self.recorder = recorder
        self.cancel_event = cancel_event
        self.slots: List[Optional[List[_Raster]]] = [None] * len(pages)
        self._progress_lock = threading.Lock()
        self._processed = 0

    def _log(self, message: str, level: str = "info") -> None:
        if self.recorder is not None:
            self.recorder.log(message, level=level)

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ProcessingCancelled("Processing was cancelled before it finished.")

    def _report_progress(self) -> None:
        with self._progress_lock:
            self._processed += 1
            fraction = self._processed / len(self.pages)
            if self.on_progress is not None:
                self.on_progress(fraction)

    def _render_page(self, index: int) -> List[_Raster]:
        page = self.pages[index]
        source_index = index + 1
        if self.split_flags[index]:
            left, right = split_spread_page(page, self.config, source_index=source_index)
            return [_Raster(raster=left, side="left"), _Raster(raster=right, side="right")]
        raster = rasterize(page, self.config, source_index=source_index)
        return [_Raster(raster=raster)]

    def process_one(self, index: int) -> None:
        """Fill slot[index]; progress is reported after the slot is filled."""

        self.check_cancelled()
        source_index = index + 1
        split = self.split_flags[index]
        try:
            rasters = self._render_page(index)
        except PageRenderError as exc:
            if self.config.on_page_error != "placeholder":
                raise
            self._log(f"{exc} Using a blank placeholder.", level="warning")
            if self.recorder is not None:
                self.recorder.add_action(
                    action="render_page",
                    status="placeholder",
                    source_page=source_index,
                    stage=exc.stage,
                    error=str(exc),
                )
            rasters = _placeholder_rasters(self.pages[index], self.config, split)
        else:
            if self.recorder is not None:
                self.recorder.add_action(
                    action="split_page" if split else "render_page",
                    status="split" if split else "rendered",
                    source_page=source_index,
                    sizes=[[item.raster.width, item.raster.height] for item in rasters],
                )
            self._log(
                f"Rendered source page {source_index}/{len(self.pages)}"
                + (" (spread, split into 2)" if split else ""),
                level="debug",
            )

        self.slots[index] = rasters
        self.check_cancelled()
        self._report_progress()

    def run_serial(self) -> None:
        for index in range(len(self.pages)):
            self.process_one(index)

    def run_parallel(self, workers: int) -> None:
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [executor.submit(self.process_one, index) for index in range(len(self.pages))]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def flatten(self) -> List[RenderedPage]:
        output: List[RenderedPage] = []
        for index, slot in enumerate(self.slots):
            for item in slot or []:
                output.append(
                    RenderedPage(
                        page_number=len(output) + 1,
                        image=item.raster.image,
                        width=item.raster.width,
                        height=item.raster.height,
                        is_left_half=item.side == "left",
                        is_right_half=item.side == "right",
                        original_source_index=index + 1 if item.side else None,
                        is_placeholder=item.placeholder,
                    )
                )
        return output


def process_document(
    document: Any,
    config: ProcessingConfig,
    on_progress: Optional[ProgressCallback] = None,
    recorder: Optional[ManifestRecorder] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[RenderedPage]:
    """
    Render every page of document into an ordered RenderedPage list.

    on_progress receives processed/page_count after each source page; the
    last call is exactly 1.0. On any error or cancellation, rasters already
    produced are released and no list is returned.
    """

    page_count = document.page_count
    if page_count <= 0:
        raise DocumentLoadError("Document has no pages.")

    pages = [document.load_page(index) for index in range(page_count)]
    ratios = [aspect_ratio(page.width, page.height) for page in pages]
    baseline, split_flags = classify_pages(ratios, config)

    if recorder is not None:
        recorder.log(
            f"Processing {page_count} page(s) at {config.dpi} DPI "
            f"(cover ratio {ratios[0]:.3f}, baseline {baseline:.3f}, "
            f"{sum(split_flags)} spread(s) to split)."
        )
        if not config.dpi_in_recommended_range:
            recorder.log(
                f"DPI {config.dpi} is outside the recommended 150-300 range.",
                level="warning",
            )

    run = _Run(pages, split_flags, config, on_progress, recorder, cancel_event)
    try:
        if config.workers > 1 and page_count > 1:
            run.run_parallel(min(config.workers, page_count))
        else:
            run.run_serial()
    except BaseException:
        _release_slots(run.slots)
        raise

    return run.flatten()
