# core/uploads/byte_counter.py
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable

from .logutil import get_logger

logger = get_logger("byte_counter")

ProgressCallback = Callable[[str, int], Awaitable[None]]


class ByteCountingTransform:
    """
    Pass-through stage between a file's byte stream and its disk writer.

    Chunks are forwarded untouched and in order, one at a time, so the sink
    pulls at its own pace. Before a chunk is handed downstream the running
    total is offered to `on_progress(filename, total)`. If the sink raises, the
    consumer stops iterating and nothing more is counted.
    """

    def __init__(self, source: AsyncIterable[bytes], filename: str, on_progress: ProgressCallback):
        self.source = source
        self.filename = filename
        self.on_progress = on_progress
        self.bytes_processed = 0
        self.chunks = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._pump()

    async def _pump(self) -> AsyncIterator[bytes]:
        async for chunk in self.source:
            if not chunk:
                continue
            self.bytes_processed += len(chunk)
            self.chunks += 1
            await self.on_progress(self.filename, self.bytes_processed)
            yield chunk

        if self.chunks == 0:
            # empty file: still give the client one observation
            logger.debug(f"empty stream for {self.filename}, offering final zero count")
            await self.on_progress(self.filename, 0)
