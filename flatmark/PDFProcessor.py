import io
import logging
from dataclasses import dataclass
from typing import Optional

from pypdf import PdfReader, PdfWriter, PageObject

from .PageFlattener import PageFlattener
from .WatermarkConfig import (
    InvalidInputError,
    PDFProcessingError,
    RasterizationError,
    WatermarkSpec,
)
from .WatermarkRenderer import WatermarkRenderer

logger = logging.getLogger(__name__)

# ==========================================
# Result
# ==========================================

@dataclass(frozen=True)
class WatermarkResult:
    """
    Outcome of one "add watermark" operation.

    For a no-op (empty watermark text) ``data`` is the caller's source
    buffer, untouched.
    """
    data: bytes
    page_count: int
    flattened: bool = False
    noop: bool = False

# ==========================================
# PDF Processor
# ==========================================

class PDFProcessor:
    """
    Manages the workflow of loading, stamping, and serializing the PDF.

    Responsibilities:
    1. Parsing the in-memory source buffer (rejecting anything that is not a usable PDF).
    2. Iterating pages and applying the watermark via WatermarkRenderer.
    3. Writing the stamped document back to bytes.
    """

    def __init__(self, source: bytes, spec: WatermarkSpec):
        self.source = source
        self.spec = spec
        self.renderer = WatermarkRenderer(spec)
        self.reader: Optional[PdfReader] = None
        self.writer = PdfWriter()

    def load_pdf(self):
        """Parses the source buffer; nothing is mutated if this fails."""
        try:
            reader = PdfReader(io.BytesIO(self.source))
        except Exception as e:
            raise InvalidInputError(f"Failed to load PDF: {e}") from e

        if reader.is_encrypted:
            raise InvalidInputError("PDF is encrypted.")

        try:
            page_count = len(reader.pages)
        except Exception as e:
            raise InvalidInputError(f"Failed to read PDF pages: {e}") from e

        self.reader = reader
        if page_count == 0:
            raise InvalidInputError("PDF has no pages.")

    @property
    def page_count(self) -> int:
        if self.reader is None:
            self.load_pdf()
        return len(self.reader.pages)

    def stamp_page(self, index: int):
        """Stamps page ``index`` and appends it to the output."""
        page = self.reader.pages[index]
        try:
            # Merge on the writer's copy; pypdf only rewrites contents of writer-owned pages
            writer_page = self.writer.add_page(page)
            self._apply_watermark_to_page(writer_page)
        except Exception as e:
            raise PDFProcessingError(f"Error stamping page {index + 1}: {e}") from e

    def process(self):
        """Main execution loop."""
        if self.reader is None:
            self.load_pdf()

        total_pages = len(self.reader.pages)
        logger.info("Stamping %d pages...", total_pages)

        for i in range(total_pages):
            self.stamp_page(i)

        self.copy_metadata()

    def copy_metadata(self):
        if self.reader.metadata:
            self.writer.add_metadata(self.reader.metadata)

    def _apply_watermark_to_page(self, page: PageObject):
        """Merges the generated watermark onto a single PDF page."""
        # MediaBox is the physical page; its origin is not always (0, 0)
        box = page.mediabox
        page_width = float(box.width)
        page_height = float(box.height)

        watermark_page = self.renderer.get_watermark(page_width, page_height)

        page.merge_translated_page(watermark_page, float(box.left), float(box.bottom))

    def to_bytes(self) -> bytes:
        """Serializes the stamped document."""
        buf = io.BytesIO()
        try:
            self.writer.write(buf)
        except Exception as e:
            raise PDFProcessingError(f"Failed to write watermarked PDF: {e}") from e
        return buf.getvalue()

# ==========================================
# Pipeline
# ==========================================

def add_watermark(
    source: bytes,
    spec: WatermarkSpec,
    flattener: Optional[PageFlattener] = None,
    fallback_to_vector: bool = False,
) -> WatermarkResult:
    """
    Stamps ``spec`` onto every page of ``source`` and optionally flattens it.

    Raises InvalidInputError for unusable source bytes and RasterizationError
    when flattening fails, unless ``fallback_to_vector`` is set, in which case
    the stamped vector document is returned with ``flattened=False``.
    """
    if not spec.is_actionable:
        logger.info("Watermark text is empty; nothing to do")
        return WatermarkResult(data=source, page_count=0, noop=True)

    processor = PDFProcessor(source, spec)
    processor.process()
    vector = processor.to_bytes()
    page_count = processor.page_count

    if not spec.flatten:
        return WatermarkResult(data=vector, page_count=page_count)

    flattener = flattener or PageFlattener()
    try:
        flat = flattener.flatten(vector)
    except RasterizationError:
        if not fallback_to_vector:
            raise
        logger.warning("Flattening failed; returning the vector watermark instead", exc_info=True)
        return WatermarkResult(data=vector, page_count=page_count)

    return WatermarkResult(data=flat, page_count=page_count, flattened=True)
