# core/uploads/handler.py
import asyncio
import os
import time
from contextlib import suppress
from typing import AsyncIterable, Callable, Dict, List, Mapping, Optional

from .byte_counter import ByteCountingTransform
from .channel import ProgressChannel
from .errors import UploadError, UploadWriteError
from .logutil import get_logger
from .multipart_source import DEFAULT_HIGH_WATER_MARK, FileByteStream, MultipartEventSource
from .paths import FILENAME_POLICIES, destination_path
from .state import FileTransfer, ProgressEvent, UploadSession
from .throttle import can_emit

logger = get_logger("handler")

ON_UPLOAD_EVENT = "file-uploaded"
PARTIAL_POLICIES = ("remove", "keep")


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


async def _open_for_write(path: str):
    opening = asyncio.ensure_future(asyncio.to_thread(open, path, "wb"))
    try:
        return await asyncio.shield(opening)
    except asyncio.CancelledError:
        # the thread still creates the file; wait for it so cleanup sees it
        with suppress(OSError):
            (await opening).close()
        raise


class UploadHandler:
    """
    Drives one upload request: multipart parsing, one disk-writing task per
    file, throttled progress pushed to the request's session.
    """
    ON_UPLOAD_EVENT = ON_UPLOAD_EVENT

    def __init__(self, channel: ProgressChannel, session: UploadSession, *,
                 clock: Optional[Callable[[], float]] = None,
                 partial_policy: str = "remove",
                 filename_policy: str = "reject",
                 high_water_mark: int = DEFAULT_HIGH_WATER_MARK):
        if partial_policy not in PARTIAL_POLICIES:
            raise ValueError(f"unknown partial upload policy: {partial_policy}")
        if filename_policy not in FILENAME_POLICIES:
            raise ValueError(f"unknown filename policy: {filename_policy}")
        self.channel = channel
        self.session = session
        self.clock = clock or _monotonic_ms
        self.partial_policy = partial_policy
        self.filename_policy = filename_policy
        self.high_water_mark = high_water_mark
        self.transfers: Dict[str, FileTransfer] = {}
        self._tasks: List[asyncio.Task] = []

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ---------- session wiring ----------
    def begin_session(self, headers: Mapping[str, str]) -> MultipartEventSource:
        """Build the parser handle; each file part it finds becomes its own task."""
        return MultipartEventSource(headers, self._spawn_file_task, high_water_mark=self.high_water_mark)

    def _spawn_file_task(self, field_name: str, stream: FileByteStream, filename: str) -> None:
        task = asyncio.create_task(self.on_file_arrival(field_name, stream, filename),
                                   name=f"upload:{self.session_id}:{filename}")
        self._tasks.append(task)

    async def process_request(self, headers: Mapping[str, str], body: AsyncIterable[bytes],
                              on_all_files_complete: Optional[Callable[[], None]] = None) -> List[FileTransfer]:
        """
        Feed the raw body through the parser and join every file task.
        `on_all_files_complete` fires once, after the last file hit the disk.
        Any failure (or cancellation) aborts the remaining files first.
        """
        handle = self.begin_session(headers)
        try:
            async for chunk in body:
                handle.write(chunk)
                self._raise_failed()
                await handle.drain()
            handle.finalize()
            await asyncio.gather(*self._tasks)
        except BaseException:
            await self.abort()
            raise

        if on_all_files_complete is not None:
            on_all_files_complete()
        logger.info(f"session {self.session_id}: {len(self.transfers)} file(s) stored")
        return list(self.transfers.values())

    def _raise_failed(self) -> None:
        for task in self._tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def abort(self) -> None:
        """Cancel in-flight file tasks and apply the partial upload policy."""
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for tr in self.transfers.values():
            if tr.status == "done":
                continue
            if tr.status == "receiving":
                tr.status = "aborted"
            if self.partial_policy != "remove":
                continue
            try:
                await asyncio.to_thread(os.remove, tr.local_path)
                logger.info(f"removed partial file {tr.local_path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"could not remove partial file {tr.local_path}: {e}")

    # ---------- per file ----------
    async def on_file_arrival(self, field_name: str, stream: FileByteStream, filename: str) -> FileTransfer:
        """
        Stream one file part to `<destination>/<filename>` (overwriting).
        Resolves when the write side is flushed and closed, not when the
        source ran dry.
        """
        try:
            path = destination_path(self.session.destination_directory, filename, self.filename_policy)
            transfer = FileTransfer(filename=filename, local_path=path)
            self.transfers[filename] = transfer
            logger.debug(f"file begin field={field_name} filename={filename} path={path}")

            try:
                fh = await _open_for_write(path)
            except OSError as e:
                transfer.status, transfer.error = "error", str(e)
                raise UploadWriteError(filename, e) from e

            try:
                async for chunk in ByteCountingTransform(stream, filename, self.compute_progress_emission):
                    await asyncio.to_thread(fh.write, chunk)
                await asyncio.to_thread(fh.flush)
            except OSError as e:
                transfer.status, transfer.error = "error", str(e)
                raise UploadWriteError(filename, e) from e
            finally:
                fh.close()
        except UploadError as e:
            logger.error(f"file {filename!r} failed: {e}")
            raise
        finally:
            stream.detach()

        transfer.status = "done"
        logger.info(f"file done filename={filename} bytes={transfer.bytes_processed} events={transfer.emissions}")
        return transfer

    async def compute_progress_emission(self, filename: str, total_bytes: int) -> bool:
        transfer = self.transfers[filename]
        transfer.observe(total_bytes)

        now = self.clock()
        if not can_emit(now, transfer.last_emission_at, self.session.throttle_window_ms):
            return False

        event = ProgressEvent(filename=filename, processed_already=total_bytes)
        await self.channel.broadcast_to_session(self.session_id, self.ON_UPLOAD_EVENT, event.to_payload())
        transfer.record_emission(now)
        return True
