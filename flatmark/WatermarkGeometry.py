"""
Watermark geometry: font size and anchor for centered 45-degree text.

The rotated text is modelled as a single-line box of width ``text_width``
and height ``font_size``. At 45 degrees its axis-aligned bounding box is a
square of side ``(text_width + font_size) * cos45``, which must fit in the
page's smaller dimension shrunk by SAFETY_MARGIN. Substituting
``text_width = width_at_1 * font_size`` gives the closed form used below.

Rendering backends disagree on where text is anchored and which way the
Y axis points, so every placement is computed for a RenderConvention:

- PDF_CONVENTION: Y up, counter-clockwise rotation (+45), anchor at the
  baseline start. Used by the ReportLab stamp.
- SCREEN_CONVENTION: Y down, rotation -45, anchor at the baseline start.
  Used by the Qt preview overlay.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .TextMetrics import ApproximateFontMetrics, ExactFontMetrics, FontMetrics
from .WatermarkConfig import WATERMARK_ROTATION

SAFETY_MARGIN = 0.9
OUTPUT_FONT_CAP = 200.0
PREVIEW_FONT_CAP = 150.0
PREVIEW_PAGE_WIDTH = 600.0

COS45 = math.sqrt(2) / 2


@dataclass(frozen=True)
class RenderConvention:
    name: str
    y_up: bool
    rotation_sign: int

    @property
    def rotation(self) -> float:
        return self.rotation_sign * WATERMARK_ROTATION


PDF_CONVENTION = RenderConvention("pdf", y_up=True, rotation_sign=1)
SCREEN_CONVENTION = RenderConvention("screen", y_up=False, rotation_sign=-1)


@dataclass(frozen=True)
class Placement:
    font_size: float
    anchor_x: float
    anchor_y: float
    text_width: float
    rotation: float


def max_font_size(width_at_1: float, page_width: float, page_height: float) -> float:
    """Largest font size whose rotated box fits inside the safety margin."""
    min_dim = min(page_width, page_height)
    return (SAFETY_MARGIN * min_dim * math.sqrt(2)) / (width_at_1 + 1)


def rotated_extent(text_width: float, font_size: float) -> float:
    """Side of the axis-aligned box around the text rotated by 45 degrees."""
    return (text_width + font_size) * COS45


def place(
    text: str,
    page_width: float,
    page_height: float,
    metrics: FontMetrics,
    cap: float = OUTPUT_FONT_CAP,
    convention: RenderConvention = PDF_CONVENTION,
) -> Placement:
    """
    Computes the font size and anchor that center ``text`` on the page.

    The anchor is where the backend starts the baseline before rotating
    about that same point. It is found by rotating the offset from the
    text's center to its baseline start and adding it to the page center.
    """
    if not text:
        raise ValueError("Cannot place an empty watermark")
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"Page dimensions must be positive, got {page_width}x{page_height}")

    width_at_1 = metrics.width_at_size(text, 1)
    font_size = min(max_font_size(width_at_1, page_width, page_height), cap)
    text_width = metrics.width_at_size(text, font_size)

    # Baseline sits half a font size below the center of the text box.
    offset_x = -text_width / 2
    offset_y = -font_size / 2 if convention.y_up else font_size / 2

    cos_a = COS45
    sin_a = convention.rotation_sign * COS45
    anchor_x = page_width / 2 + cos_a * offset_x - sin_a * offset_y
    anchor_y = page_height / 2 + sin_a * offset_x + cos_a * offset_y

    return Placement(
        font_size=font_size,
        anchor_x=anchor_x,
        anchor_y=anchor_y,
        text_width=text_width,
        rotation=convention.rotation,
    )


def output_placement(text: str, page_width: float, page_height: float,
                     metrics: Optional[FontMetrics] = None) -> Placement:
    """Placement for the final PDF stamp (exact metrics, cap 200)."""
    return place(text, page_width, page_height, metrics or ExactFontMetrics(),
                 cap=OUTPUT_FONT_CAP, convention=PDF_CONVENTION)


def preview_placement(text: str, page_width: float, page_height: float,
                      display_width: float = PREVIEW_PAGE_WIDTH) -> Placement:
    """
    Placement for the preview overlay, in display units.

    The page is shown scaled to ``display_width``; the overlay is sized from
    that scaled page with the character-count heuristic and the preview cap.
    """
    display_height = page_height * display_width / page_width
    return place(text, display_width, display_height, ApproximateFontMetrics(),
                 cap=PREVIEW_FONT_CAP, convention=SCREEN_CONVENTION)


def metrics_divergence(text: str, page_width: float, page_height: float,
                       exact: Optional[FontMetrics] = None) -> float:
    """
    Relative gap between the preview and output font sizes, in page units.

    Returns ``abs(preview - output) / output``. Caps are applied in each
    path's own units, so pages where either path hits its cap will diverge
    by more than the metrics alone explain.
    """
    output = output_placement(text, page_width, page_height, exact)
    preview = preview_placement(text, page_width, page_height)
    preview_in_page_units = preview.font_size * page_width / PREVIEW_PAGE_WIDTH
    return abs(preview_in_page_units - output.font_size) / output.font_size
