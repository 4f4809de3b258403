"""
Cooperative asynchronous watermark pipeline.

A WatermarkSession holds the current source document and runs "add
watermark" operations as a chain of awaitable steps. Every blocking step
(parsing, stamping one page, serializing, rasterizing one page) runs on
the session's single worker thread, so steps never overlap while the
event loop stays free between them.

Operations are not cancelled. Each run is tagged with a generation number
and only the most recent generation may emit a result; superseded runs
stop at the next step boundary and return None.
"""

import asyncio
import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .PageFlattener import PageFlattener
from .PDFProcessor import PDFProcessor, WatermarkResult
from .WatermarkConfig import InvalidInputError, RasterizationError, WatermarkError, WatermarkSpec

logger = logging.getLogger(__name__)


class GenerationCounter:
    """Monotonically increasing operation tags; the latest one wins."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._current = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._current = next(self._counter)
            return self._current

    @property
    def current(self) -> int:
        return self._current

    def is_current(self, generation: int) -> bool:
        return generation == self._current


class StaleOperation(Exception):
    """Internal signal: a newer operation has started."""


class WatermarkSession:
    """Runs watermark operations against one source document."""

    def __init__(self, source: Optional[bytes] = None, flattener: Optional[PageFlattener] = None,
                 fallback_to_vector: bool = False):
        self.source = source
        self.flattener = flattener or PageFlattener()
        self.fallback_to_vector = fallback_to_vector
        self.generations = GenerationCounter()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flatmark")

    def set_source(self, source: bytes):
        """Replaces the source document; any in-flight run becomes stale."""
        self.source = source
        self.generations.next()

    async def _step(self, generation: int, func, *args):
        if not self.generations.is_current(generation):
            raise StaleOperation()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def run(self, spec: WatermarkSpec) -> Optional[WatermarkResult]:
        """
        Watermarks the current source with ``spec``.

        Returns the result, or None if a newer run (or a new source) superseded
        this one before it finished. Errors from a current run propagate as
        WatermarkError subclasses.
        """
        generation = self.generations.next()
        source = self.source
        if source is None:
            raise InvalidInputError("No source document loaded.")

        try:
            result = await self._run(generation, source, spec)
        except StaleOperation:
            logger.debug("Operation %d superseded; discarding", generation)
            return None
        except WatermarkError:
            if self.generations.is_current(generation):
                raise
            logger.debug("Operation %d failed after being superseded; discarding", generation, exc_info=True)
            return None

        if not self.generations.is_current(generation):
            logger.debug("Operation %d finished after being superseded; discarding", generation)
            return None
        return result

    async def _run(self, generation: int, source: bytes, spec: WatermarkSpec) -> WatermarkResult:
        if not spec.is_actionable:
            return WatermarkResult(data=source, page_count=0, noop=True)

        processor = PDFProcessor(source, spec)
        await self._step(generation, processor.load_pdf)
        page_count = processor.page_count
        for index in range(page_count):
            await self._step(generation, processor.stamp_page, index)
        processor.copy_metadata()
        vector = await self._step(generation, processor.to_bytes)

        if not spec.flatten:
            return WatermarkResult(data=vector, page_count=page_count)

        try:
            flat = await self._flatten(generation, vector)
        except RasterizationError:
            if not self.fallback_to_vector:
                raise
            logger.warning("Flattening failed; returning the vector watermark instead", exc_info=True)
            return WatermarkResult(data=vector, page_count=page_count)
        return WatermarkResult(data=flat, page_count=page_count, flattened=True)

    async def _flatten(self, generation: int, vector: bytes) -> bytes:
        job = await self._step(generation, self.flattener.open, vector)
        try:
            for index in range(job.page_count):
                await self._step(generation, job.flatten_page, index)
            return await self._step(generation, job.save)
        finally:
            await asyncio.get_running_loop().run_in_executor(self._executor, job.close)

    def close(self):
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
