"""Local PDF text watermarking with optional page flattening."""

from .WatermarkConfig import (
    InvalidInputError,
    PDFProcessingError,
    RasterizationError,
    WatermarkError,
    WatermarkSpec,
    parse_hex_color,
    watermarked_filename,
)
from .TextMetrics import ApproximateFontMetrics, ExactFontMetrics, FontMetrics
from .WatermarkGeometry import (
    PDF_CONVENTION,
    SCREEN_CONVENTION,
    Placement,
    place,
    preview_placement,
)
from .PDFProcessor import WatermarkResult, add_watermark
from .WatermarkSession import GenerationCounter

# Classes named like their modules (PageFlattener, PDFProcessor,
# WatermarkSession, ...) are imported from those modules directly.

__version__ = "0.1.0"
