import asyncio

import pytest

from core.uploads.errors import UploadParserError
from core.uploads.multipart_source import FileByteStream, MultipartEventSource

from conftest import multipart_body, split


class Collector:
    def __init__(self):
        self.files = []

    def __call__(self, field_name, stream, filename):
        self.files.append((field_name, filename, stream))


async def _read_all(stream):
    return b"".join([c async for c in stream])


@pytest.mark.asyncio
async def test_surfaces_each_file_part_as_a_stream():
    headers, body = multipart_body([("files", "a.txt", b"alpha" * 20), ("files", "b.bin", b"\x00\x01" * 7)],
                                   fields={"note": b"hi"})
    got = Collector()
    src = MultipartEventSource(headers, got)
    for chunk in split(body, 9):
        src.write(chunk)
    src.finalize()

    assert [(f, n) for f, n, _ in got.files] == [("files", "a.txt"), ("files", "b.bin")]
    assert await _read_all(got.files[0][2]) == b"alpha" * 20
    assert await _read_all(got.files[1][2]) == b"\x00\x01" * 7
    assert src.fields == {"note": b"hi"}
    assert src.finished


def test_header_lookup_is_case_insensitive():
    headers, _ = multipart_body([("f", "x", b"")])
    MultipartEventSource({"content-type": headers["Content-Type"]}, Collector())


@pytest.mark.parametrize("ctype", ["", "application/json", "multipart/form-data"])
def test_rejects_non_multipart_or_missing_boundary(ctype):
    with pytest.raises(UploadParserError):
        MultipartEventSource({"Content-Type": ctype}, Collector())


@pytest.mark.asyncio
async def test_truncated_body_fails_open_streams():
    headers, body = multipart_body([("files", "a.txt", b"x" * 100)])
    got = Collector()
    src = MultipartEventSource(headers, got)
    src.write(body[:-20])
    with pytest.raises(UploadParserError):
        src.finalize()
    with pytest.raises(UploadParserError):
        await _read_all(got.files[0][2])


@pytest.mark.asyncio
async def test_stream_backpressure_releases_after_read():
    stream = FileByteStream("f", high_water_mark=4)
    stream.feed(b"12345")
    drain = asyncio.create_task(stream.drain())
    await asyncio.sleep(0)
    assert not drain.done()

    assert await stream.__anext__() == b"12345"
    await asyncio.wait_for(drain, 1)


@pytest.mark.asyncio
async def test_detached_stream_never_blocks_producer():
    stream = FileByteStream("f", high_water_mark=1)
    stream.feed(b"abc")
    stream.detach()
    stream.feed(b"more")
    assert stream.buffered == 0
    await asyncio.wait_for(stream.drain(), 1)
