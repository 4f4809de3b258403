#!/usr/bin/env python3
"""
PDF Watermark Flattener - Part 1: Configuration & Infrastructure

This module provides the shared building blocks for stamping a diagonal
text watermark onto every page of a PDF and, optionally, flattening the
result so the watermark cannot be removed.

Architecture:
1. Configuration: Exceptions, constants and the immutable WatermarkSpec.
2. Metrics & Geometry: Font measuring and the 45-degree placement engine.
3. Rendering: ReportLab generation of watermark stamps (in-memory).
4. Processing: pypdf integration to merge stamps with source PDFs.
5. Flattening: PyMuPDF + Pillow rasterization of every page.
6. Hosts: Command-line interface and PyQt6 preview window.

Dependencies:
- reportlab
- pypdf
- pymupdf
- pillow
"""

import re
from dataclasses import dataclass
from typing import Tuple

# ==========================================
# Custom Exceptions
# ==========================================

class WatermarkError(Exception):
    """Base exception for all watermarking operations."""
    pass

class InvalidInputError(WatermarkError):
    """Raised when input parameters or source bytes are invalid."""
    pass

class PDFProcessingError(WatermarkError):
    """Raised when stamping or serializing the PDF fails."""
    pass

class RasterizationError(PDFProcessingError):
    """Raised when a page cannot be rasterized during flattening."""
    pass

# ==========================================
# Constants
# ==========================================

WATERMARK_ROTATION = 45.0      # Degrees, counter-clockwise from horizontal
FONT_NAME = "Helvetica"        # Standard font used for the output stamp

DEFAULT_COLOR = "#BFBFBF"
DEFAULT_OPACITY = 0.3
MIN_GUI_OPACITY = 0.1

OUTPUT_SUFFIX = "-watermarked"

RGB = Tuple[float, float, float]

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


def parse_hex_color(value: str) -> RGB:
    """Converts '#RRGGBB' into an RGB triple with channels in [0, 1]."""
    match = _HEX_COLOR.match(value.strip())
    if not match:
        raise InvalidInputError(f"Color must look like '#RRGGBB', got {value!r}")
    digits = match.group(1)
    return tuple(int(digits[i:i + 2], 16) / 255 for i in (0, 2, 4))


def watermarked_filename(name: str) -> str:
    """Suggested download name: 'report.pdf' -> 'report-watermarked.pdf'."""
    stem = re.sub(r"\.pdf$", "", name, flags=re.IGNORECASE)
    return f"{stem}{OUTPUT_SUFFIX}.pdf"

# ==========================================
# Configuration Data Class
# ==========================================

@dataclass(frozen=True)
class WatermarkSpec:
    """
    Parameters for one "add watermark" operation.

    Instances are immutable so an in-flight operation always sees the
    snapshot it was started with. Rotation is not configurable; every
    watermark is drawn at WATERMARK_ROTATION.
    """

    text: str
    color: RGB = parse_hex_color(DEFAULT_COLOR)
    opacity: float = DEFAULT_OPACITY
    flatten: bool = True

    rotation = WATERMARK_ROTATION

    def __post_init__(self):
        """Validates configuration after initialization."""
        self._validate_opacity()
        self._validate_color()
        self._validate_text()

    def _validate_opacity(self):
        """Ensures opacity is within the (0.0, 1.0] range."""
        if not (0.0 < self.opacity <= 1.0):
            raise InvalidInputError(f"Opacity must be in (0.0, 1.0], got {self.opacity}")

    def _validate_color(self):
        if not isinstance(self.color, (tuple, list)) or len(self.color) != 3:
            raise InvalidInputError(f"Color must be an RGB triple, got {self.color!r}")
        if not all(isinstance(channel, (int, float)) and not isinstance(channel, bool) for channel in self.color):
            raise InvalidInputError(f"Color channels must be numbers, got {self.color!r}")
        for channel in self.color:
            if not (0.0 <= channel <= 1.0):
                raise InvalidInputError(f"Color channels must be in [0.0, 1.0], got {self.color!r}")

    def _validate_text(self):
        """The standard PDF fonts only carry WinAnsi glyphs."""
        try:
            self.text.encode("cp1252")
        except UnicodeEncodeError as e:
            raise InvalidInputError(
                f"Watermark text contains characters the {FONT_NAME} font cannot draw: {e.object[e.start:e.end]!r}"
            )

    @property
    def stripped_text(self) -> str:
        """The text actually drawn on the page."""
        return self.text.strip()

    @property
    def is_actionable(self) -> bool:
        """False when the trimmed text is empty; such operations are no-ops."""
        return bool(self.stripped_text)

    @classmethod
    def from_hex(cls, text: str, color: str = DEFAULT_COLOR, opacity: float = DEFAULT_OPACITY,
                 flatten: bool = True) -> "WatermarkSpec":
        return cls(text=text, color=parse_hex_color(color), opacity=opacity, flatten=flatten)
