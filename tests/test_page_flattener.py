import fitz
import pytest
from PIL import Image

from flatmark.PageFlattener import FlattenJob, PageFlattener
from flatmark.WatermarkConfig import InvalidInputError, RasterizationError


def page_sizes(data: bytes):
    """Flat [w0, h0, w1, h1, ...] list, comparable with pytest.approx."""
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [v for page in doc for v in (page.rect.width, page.rect.height)]


class TestPageFlattener:

    def test_preserves_page_count_and_sizes(self, mixed_pdf_bytes):
        flat = PageFlattener().flatten(mixed_pdf_bytes)
        assert page_sizes(flat) == pytest.approx(page_sizes(mixed_pdf_bytes))

    def test_pages_are_single_images_without_text(self, mixed_pdf_bytes):
        flat = PageFlattener().flatten(mixed_pdf_bytes)
        with fitz.open(stream=flat, filetype="pdf") as doc:
            for page in doc:
                assert page.get_text().strip() == ""
                images = page.get_images()
                assert len(images) == 1

    def test_image_is_rendered_at_twice_the_resolution(self, make_pdf):
        flat = PageFlattener().flatten(make_pdf([(200, 100)]))
        with fitz.open(stream=flat, filetype="pdf") as doc:
            xref = doc[0].get_images()[0][0]
            info = doc.extract_image(xref)
        assert info["ext"] in ("jpeg", "jpg")
        assert (info["width"], info["height"]) == (400, 200)

    def test_image_covers_whole_page(self, make_pdf):
        flat = PageFlattener().flatten(make_pdf([(200, 100)]))
        with fitz.open(stream=flat, filetype="pdf") as doc:
            page = doc[0]
            bbox = page.get_image_info()[0]["bbox"]
            assert bbox == pytest.approx((0, 0, 200, 100))

    def test_reflattening_keeps_pages(self, mixed_pdf_bytes):
        flattener = PageFlattener()
        once = flattener.flatten(mixed_pdf_bytes)
        twice = flattener.flatten(once)
        assert page_sizes(twice) == pytest.approx(page_sizes(mixed_pdf_bytes))

    def test_fifty_pages_one_raster_at_a_time(self, make_pdf):
        sizes = [(200, 300) if i % 2 else (300, 200) for i in range(50)]
        flattener = PageFlattener(scale=1.0)
        flat = flattener.flatten(make_pdf(sizes))
        assert page_sizes(flat) == pytest.approx([v for size in sizes for v in size])
        assert flattener.last_job.peak_live_rasters == 1
        assert flattener.last_job.live_rasters == 0

    def test_failure_on_one_page_fails_everything(self, mixed_pdf_bytes, monkeypatch):
        original = Image.frombytes
        calls = []

        def fail_on_second(*args, **kwargs):
            calls.append(1)
            if len(calls) == 2:
                raise OSError("bad page")
            return original(*args, **kwargs)

        monkeypatch.setattr(Image, "frombytes", fail_on_second)
        flattener = PageFlattener()
        with pytest.raises(RasterizationError, match="page 2"):
            flattener.flatten(mixed_pdf_bytes)
        assert flattener.last_job.live_rasters == 0

    def test_rejects_malformed_bytes(self):
        with pytest.raises(InvalidInputError):
            PageFlattener().flatten(b"not a pdf")


class TestFlattenJob:

    def test_pages_must_be_flattened_in_order(self, mixed_pdf_bytes):
        with FlattenJob(mixed_pdf_bytes) as job:
            with pytest.raises(RasterizationError):
                job.flatten_page(1)

    def test_save_refuses_partial_output(self, mixed_pdf_bytes):
        with FlattenJob(mixed_pdf_bytes) as job:
            job.flatten_page(0)
            with pytest.raises(RasterizationError):
                job.save()

    def test_step_by_step(self, mixed_pdf_bytes):
        with FlattenJob(mixed_pdf_bytes) as job:
            assert job.page_count == 3
            for index in range(job.page_count):
                job.flatten_page(index)
            flat = job.save()
        assert page_sizes(flat) == pytest.approx(page_sizes(mixed_pdf_bytes))
