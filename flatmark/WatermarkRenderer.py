import io
import logging
from typing import Dict, Tuple

from reportlab.pdfgen import canvas
from pypdf import PdfReader, PageObject

from .TextMetrics import ExactFontMetrics
from .WatermarkConfig import FONT_NAME, WatermarkSpec
from .WatermarkGeometry import Placement, output_placement

logger = logging.getLogger(__name__)

# ==========================================
# Watermark Renderer
# ==========================================

class WatermarkRenderer:
    """
    Handles the generation of watermark PDF pages using ReportLab.

    This class is responsible for:
    1. Creating an in-memory PDF stream for the watermark.
    2. Asking the geometry engine for font size and anchor.
    3. Drawing the rotated text onto the canvas.
    4. Caching generated pages to optimize performance for uniform page sizes.
    """

    def __init__(self, spec: WatermarkSpec, font_name: str = FONT_NAME):
        if not spec.is_actionable:
            raise ValueError("WatermarkRenderer needs non-empty watermark text")
        self.spec = spec
        self.font_name = font_name
        self.metrics = ExactFontMetrics(font_name)
        # Cache key: (width, height), Value: pypdf.PageObject
        self._cache: Dict[Tuple[float, float], PageObject] = {}

    def placement_for(self, page_width: float, page_height: float) -> Placement:
        return output_placement(self.spec.stripped_text, page_width, page_height, self.metrics)

    def get_watermark(self, page_width: float, page_height: float) -> PageObject:
        """
        Retrieves a watermark PageObject for the specified dimensions.
        Returns a cached object if available, otherwise renders a new one.
        """
        # Round dimensions to avoid cache misses on negligible float differences
        key = (round(page_width, 2), round(page_height, 2))

        if key not in self._cache:
            self._cache[key] = self._render_watermark_page(page_width, page_height)

        return self._cache[key]

    def _render_watermark_page(self, width: float, height: float) -> PageObject:
        """Internal method to draw the watermark on a fresh PDF page."""
        packet = io.BytesIO()

        c = canvas.Canvas(packet, pagesize=(width, height))

        # ReportLab handles alpha via fillAlpha/strokeAlpha
        c.setFillAlpha(self.spec.opacity)
        c.setStrokeAlpha(self.spec.opacity)

        self._draw_text(c, width, height)

        c.save()
        packet.seek(0)

        logger.debug("Rendered %.2fx%.2f watermark stamp", width, height)
        reader = PdfReader(packet)
        return reader.pages[0]

    def _draw_text(self, c: canvas.Canvas, page_w: float, page_h: float):
        """Draws the text with its baseline start at the anchor, then rotates about it."""
        placement = self.placement_for(page_w, page_h)

        c.setFont(self.font_name, placement.font_size)
        c.setFillColorRGB(*self.spec.color)

        c.saveState()
        c.translate(placement.anchor_x, placement.anchor_y)
        c.rotate(placement.rotation)
        c.drawString(0, 0, self.spec.stripped_text)
        c.restoreState()
