"""
Page flattening: turn every page into a single full-page JPEG.

Each page is rendered with PyMuPDF at RASTER_SCALE, encoded with Pillow
and placed on a new page of the original size. Once flattened, the
watermark and the page content are pixels only and cannot be lifted out
by editing the vector layer.

Pages are processed one at a time; a page's pixmap, image and encode
buffer are released before the next page is rendered.
"""

import io
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import fitz  # PyMuPDF
from PIL import Image
from tqdm import tqdm

from .WatermarkConfig import InvalidInputError, RasterizationError

logger = logging.getLogger(__name__)

RASTER_SCALE = 2.0
JPEG_QUALITY = 92


class FlattenJob:
    """
    One flatten run over an open source document.

    ``flatten_page`` must be called for every index in order before
    ``save``; the async pipeline drives these steps one by one.
    """

    def __init__(self, data: bytes, scale: float = RASTER_SCALE, jpeg_quality: int = JPEG_QUALITY):
        try:
            self.doc_in = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise InvalidInputError(f"Failed to open PDF for flattening: {e}") from e
        self.doc_out = fitz.open()
        self.scale = scale
        self.jpeg_quality = jpeg_quality
        self.pages_done = 0
        self.live_rasters = 0
        self.peak_live_rasters = 0

    @property
    def page_count(self) -> int:
        return self.doc_in.page_count

    @contextmanager
    def _page_raster(self, page: "fitz.Page") -> Iterator[bytes]:
        """Renders one page and yields it as JPEG bytes; buffers are dropped on exit."""
        pix = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale), alpha=False)
        self.live_rasters += 1
        self.peak_live_rasters = max(self.peak_live_rasters, self.live_rasters)
        buf = io.BytesIO()
        try:
            img = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
            try:
                img.save(buf, format="JPEG", quality=self.jpeg_quality)
            finally:
                img.close()
            yield buf.getvalue()
        finally:
            buf.close()
            pix = None
            self.live_rasters -= 1

    def flatten_page(self, index: int):
        if index != self.pages_done:
            raise RasterizationError(f"Pages must be flattened in order; expected {self.pages_done}, got {index}")

        try:
            page = self.doc_in.load_page(index)
            width, height = page.rect.width, page.rect.height
            with self._page_raster(page) as jpeg:
                out_page = self.doc_out.new_page(width=width, height=height)
                out_page.insert_image(out_page.rect, stream=jpeg, keep_proportion=False)
            page = None
        except Exception as e:
            raise RasterizationError(f"Failed to rasterize page {index + 1}: {e}") from e

        self.pages_done += 1
        logger.debug("Flattened page %d/%d (%.2fx%.2f)", index + 1, self.page_count, width, height)

    def save(self) -> bytes:
        if self.pages_done != self.page_count:
            raise RasterizationError(
                f"Only {self.pages_done} of {self.page_count} pages were flattened"
            )
        try:
            return self.doc_out.tobytes(deflate=True, garbage=4)
        except Exception as e:
            raise RasterizationError(f"Failed to save flattened PDF: {e}") from e

    def close(self):
        self.doc_in.close()
        self.doc_out.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class PageFlattener:
    """Rasterizes every page of a PDF into an image-only PDF of the same page sizes."""

    def __init__(self, scale: float = RASTER_SCALE, jpeg_quality: int = JPEG_QUALITY,
                 progress: bool = False):
        self.scale = scale
        self.jpeg_quality = jpeg_quality
        self.progress = progress
        self.last_job: Optional[FlattenJob] = None

    def open(self, data: bytes) -> FlattenJob:
        job = FlattenJob(data, scale=self.scale, jpeg_quality=self.jpeg_quality)
        self.last_job = job
        return job

    def flatten(self, data: bytes) -> bytes:
        """All-or-nothing: any page failure raises RasterizationError and nothing is returned."""
        with self.open(data) as job:
            logger.info("Flattening %d pages at %.1fx", job.page_count, self.scale)
            pages = tqdm(range(job.page_count), desc="Flattening", unit="page", disable=not self.progress)
            for index in pages:
                job.flatten_page(index)
            return job.save()
