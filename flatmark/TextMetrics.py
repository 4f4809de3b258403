"""
Text measuring for watermark sizing.

Two interchangeable providers satisfy the FontMetrics protocol:

- ExactFontMetrics measures with the AFM metrics of the font that draws
  the output stamp, so the final geometry is exact.
- ApproximateFontMetrics assumes every character is 0.55 em wide. It only
  drives the interactive preview, which is drawn by a different text
  rasterizer anyway. Its results are expected to differ a little from
  the exact provider; that gap is an accepted approximation, not a bug.

Both providers are linear in size: width_at_size(t, s) == s * width_at_size(t, 1).
"""

from typing import Protocol

from reportlab.pdfbase import pdfmetrics

from .WatermarkConfig import FONT_NAME

APPROX_CHAR_WIDTH_RATIO = 0.55


class FontMetrics(Protocol):
    def width_at_size(self, text: str, size: float) -> float:
        ...


class ExactFontMetrics:
    """Width of ``text`` as drawn by ReportLab with ``font_name``."""

    def __init__(self, font_name: str = FONT_NAME):
        # Fails early for fonts that are neither standard nor registered.
        pdfmetrics.getFont(font_name)
        self.font_name = font_name

    def width_at_size(self, text: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, self.font_name, size)

    def __repr__(self):
        return f"ExactFontMetrics({self.font_name!r})"


class ApproximateFontMetrics:
    """Character-count heuristic used by the preview overlay."""

    def __init__(self, char_width_ratio: float = APPROX_CHAR_WIDTH_RATIO):
        self.char_width_ratio = char_width_ratio

    def width_at_size(self, text: str, size: float) -> float:
        return len(text) * self.char_width_ratio * size

    def __repr__(self):
        return f"ApproximateFontMetrics({self.char_width_ratio})"
