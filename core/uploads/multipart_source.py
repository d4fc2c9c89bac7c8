# core/uploads/multipart_source.py
"""
Event source over python-multipart's callback parser.

Raw request bytes go in through `write()`; every part that carries a filename
is surfaced as a `FileByteStream` handed to `on_file(field_name, stream,
filename)` as soon as its headers are complete. The streams buffer at most
`high_water_mark` bytes each; `drain()` is awaited by whoever feeds the body
so a slow consumer suspends the request read.
"""
import asyncio
from collections import deque
from typing import Any, Callable, Dict, List, Mapping, Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from .errors import UploadParserError
from .logutil import get_logger

logger = get_logger("multipart")

DEFAULT_HIGH_WATER_MARK = 256 * 1024

OnFile = Callable[[str, "FileByteStream", str], None]


class FileByteStream:
    """Async iterator of the raw bytes of one multipart file part."""

    def __init__(self, filename: str, high_water_mark: int = DEFAULT_HIGH_WATER_MARK):
        self.filename = filename
        self.high_water_mark = max(1, int(high_water_mark))
        self._chunks: deque = deque()
        self._buffered = 0
        self._eof = False
        self._detached = False
        self._error: Optional[BaseException] = None
        self._readable = asyncio.Event()
        self._writable = asyncio.Event()
        self._writable.set()

    @property
    def buffered(self) -> int:
        return self._buffered

    @property
    def at_eof(self) -> bool:
        return self._eof

    def feed(self, data: bytes) -> None:
        if self._detached or not data:
            return
        self._chunks.append(data)
        self._buffered += len(data)
        self._readable.set()
        if self._buffered >= self.high_water_mark:
            self._writable.clear()

    def feed_eof(self) -> None:
        self._eof = True
        self._readable.set()

    def abort(self, exc: BaseException) -> None:
        """Fail the consumer on its next read."""
        self._error = exc
        self._readable.set()

    def detach(self) -> None:
        """Consumer is gone: drop buffered data and stop holding the producer back."""
        self._detached = True
        self._chunks.clear()
        self._buffered = 0
        self._writable.set()

    async def drain(self) -> None:
        await self._writable.wait()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        while not self._chunks:
            if self._error is not None:
                raise self._error
            if self._eof:
                raise StopAsyncIteration
            self._readable.clear()
            await self._readable.wait()
        chunk = self._chunks.popleft()
        self._buffered -= len(chunk)
        if self._buffered < self.high_water_mark:
            self._writable.set()
        return chunk


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    for k, v in headers.items():
        if k.lower() == name:
            return v
    return None


class MultipartEventSource:
    """ParserHandle for one upload request."""

    def __init__(self, headers: Mapping[str, str], on_file: OnFile, *,
                 high_water_mark: int = DEFAULT_HIGH_WATER_MARK):
        ctype, params = parse_options_header(_header(headers, "content-type") or "")
        ctype = ctype.strip().lower()
        if ctype != b"multipart/form-data":
            raise UploadParserError(f"expected multipart/form-data, got {ctype.decode('latin-1') or 'nothing'}")
        boundary = params.get(b"boundary")
        if not boundary:
            raise UploadParserError("multipart boundary missing")

        self.on_file = on_file
        self.high_water_mark = high_water_mark
        self.fields: Dict[str, bytes] = {}
        self.streams: List[FileByteStream] = []
        self.finished = False

        self._part_headers: Dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._current: Optional[FileByteStream] = None
        self._current_field: Optional[str] = None
        self._field_buf: List[bytes] = []

        callbacks: Dict[str, Any] = {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_end": self._on_end,
        }
        self._parser = MultipartParser(boundary, callbacks)

    # ---------- parser callbacks ----------
    def _on_part_begin(self) -> None:
        self._part_headers = {}
        self._current = None
        self._current_field = None
        self._field_buf = []

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += bytes(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += bytes(data[start:end])

    def _on_header_end(self) -> None:
        self._part_headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        disposition, params = parse_options_header(self._part_headers.get(b"content-disposition", b""))
        field_name = params.get(b"name", b"").decode("utf-8", "replace")
        raw_filename = params.get(b"filename")
        if raw_filename is None:
            self._current_field = field_name
            return

        filename = raw_filename.decode("utf-8", "replace")
        stream = FileByteStream(filename, self.high_water_mark)
        self.streams.append(stream)
        self._current = stream
        logger.debug(f"file part begin field={field_name} filename={filename}")
        self.on_file(field_name, stream, filename)

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end <= start:
            return
        if self._current is not None:
            self._current.feed(bytes(data[start:end]))
        elif self._current_field is not None:
            self._field_buf.append(bytes(data[start:end]))

    def _on_part_end(self) -> None:
        if self._current is not None:
            self._current.feed_eof()
            self._current = None
        elif self._current_field is not None:
            self.fields[self._current_field] = b"".join(self._field_buf)
            self._current_field = None
            self._field_buf = []

    def _on_end(self) -> None:
        self.finished = True

    # ---------- feeding ----------
    def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            err = UploadParserError(f"malformed multipart body: {e}")
            self._abort_open_streams(err)
            raise err from e

    async def drain(self) -> None:
        for stream in self.streams:
            if stream.buffered >= stream.high_water_mark:
                await stream.drain()

    def finalize(self) -> None:
        self._parser.finalize()
        if not self.finished:
            err = UploadParserError("multipart body ended before the closing boundary")
            self._abort_open_streams(err)
            raise err

    def _abort_open_streams(self, exc: BaseException) -> None:
        for stream in self.streams:
            if not stream.at_eof:
                stream.abort(exc)
