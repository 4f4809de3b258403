import io
from typing import Iterable, Tuple

import pytest
from reportlab.pdfgen import canvas

from flatmark.WatermarkConfig import WatermarkSpec


def build_pdf(sizes: Iterable[Tuple[float, float]], title: str = "Sample") -> bytes:
    """Builds a PDF with one labelled page per (width, height)."""
    packet = io.BytesIO()
    c = canvas.Canvas(packet)
    c.setTitle(title)
    for i, (width, height) in enumerate(sizes):
        c.setPageSize((width, height))
        c.setFont("Helvetica", 12)
        c.drawString(20, height / 2, f"Body text {i + 1}")
        c.showPage()
    c.save()
    return packet.getvalue()


@pytest.fixture
def letter_pdf_bytes() -> bytes:
    return build_pdf([(612, 792), (612, 792)])


@pytest.fixture
def mixed_pdf_bytes() -> bytes:
    return build_pdf([(612, 792), (792, 612), (300, 300)])


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def spec() -> WatermarkSpec:
    return WatermarkSpec(text="CONFIDENTIAL", flatten=False)
