import asyncio

import fitz
import pytest

from flatmark.WatermarkConfig import InvalidInputError, WatermarkSpec
from flatmark.WatermarkSession import GenerationCounter, WatermarkSession


def page_count(data: bytes) -> int:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return doc.page_count


class TestGenerationCounter:

    def test_monotonic(self):
        counter = GenerationCounter()
        assert [counter.next() for _ in range(3)] == [1, 2, 3]

    def test_only_latest_is_current(self):
        counter = GenerationCounter()
        first = counter.next()
        second = counter.next()
        assert not counter.is_current(first)
        assert counter.is_current(second)
        assert counter.current == second


class TestWatermarkSession:

    def test_run_flattened(self, mixed_pdf_bytes):
        with WatermarkSession(mixed_pdf_bytes) as session:
            result = asyncio.run(session.run(WatermarkSpec(text="CONFIDENTIAL")))
        assert result.flattened is True
        assert result.page_count == 3
        assert page_count(result.data) == 3

    def test_run_vector(self, letter_pdf_bytes, spec):
        with WatermarkSession(letter_pdf_bytes) as session:
            result = asyncio.run(session.run(spec))
        assert result.flattened is False
        with fitz.open(stream=result.data, filetype="pdf") as doc:
            assert "CONFIDENTIAL" in "".join(doc[0].get_text().split())

    def test_superseded_run_is_discarded(self, letter_pdf_bytes):
        async def scenario(session):
            return await asyncio.gather(
                session.run(WatermarkSpec(text="OLD", flatten=False)),
                session.run(WatermarkSpec(text="NEW", flatten=False)),
            )

        with WatermarkSession(letter_pdf_bytes) as session:
            stale, fresh = asyncio.run(scenario(session))

        assert stale is None
        with fitz.open(stream=fresh.data, filetype="pdf") as doc:
            assert "NEW" in "".join(doc[0].get_text().split())

    def test_new_source_makes_run_stale(self, letter_pdf_bytes, mixed_pdf_bytes):
        async def scenario(session):
            task = asyncio.ensure_future(session.run(WatermarkSpec(text="DRAFT")))
            await asyncio.sleep(0)
            session.set_source(mixed_pdf_bytes)
            return await task

        with WatermarkSession(letter_pdf_bytes) as session:
            assert asyncio.run(scenario(session)) is None
            assert session.source is mixed_pdf_bytes

    def test_empty_text_is_noop(self, letter_pdf_bytes):
        with WatermarkSession(letter_pdf_bytes) as session:
            result = asyncio.run(session.run(WatermarkSpec(text=" ")))
        assert result.noop is True
        assert result.data is letter_pdf_bytes

    def test_invalid_source(self):
        with WatermarkSession(b"not a pdf") as session:
            with pytest.raises(InvalidInputError):
                asyncio.run(session.run(WatermarkSpec(text="DRAFT")))

    def test_no_source(self):
        with WatermarkSession() as session:
            with pytest.raises(InvalidInputError):
                asyncio.run(session.run(WatermarkSpec(text="DRAFT")))

    def test_error_from_superseded_run_is_discarded(self, letter_pdf_bytes):
        async def scenario(session):
            task = asyncio.ensure_future(session.run(WatermarkSpec(text="DRAFT")))
            await asyncio.sleep(0)
            session.set_source(letter_pdf_bytes)
            stale = await task
            fresh = await session.run(WatermarkSpec(text="DRAFT", flatten=False))
            return stale, fresh

        with WatermarkSession(b"not a pdf") as session:
            stale, fresh = asyncio.run(scenario(session))

        assert stale is None
        assert fresh.page_count == 2
