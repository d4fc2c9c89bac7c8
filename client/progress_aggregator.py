# client/progress_aggregator.py
"""
Client side view of one upload batch.

Each file moves PENDING -> IN_PROGRESS -> NEAR_COMPLETE -> SETTLED. Percent
is recomputed from the absolute `processedAlready` of every event, so a
replayed event never double counts. The figure handed to the view is the
SUM of the per-file percents, not their mean: a two file batch reads 200
when done. Crossing 98 % on a file refreshes the listing early, once per
file; the batch finishing refreshes it once more.
"""
import asyncio
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from .log import get_logger

logger = get_logger("aggregator")

NEAR_COMPLETE_PERCENT = 98
MODAL_CLOSE_DELAY = 1.0


class FileState(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    NEAR_COMPLETE = "near_complete"
    SETTLED = "settled"


@dataclass
class LocalFile:
    name: str
    size: int
    path: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> "LocalFile":
        return cls(name=os.path.basename(path), size=os.path.getsize(path), path=path)


@dataclass
class ClientFileState:
    name: str
    size_bytes: int
    percent: int = 0
    state: FileState = FileState.PENDING


def file_percent(processed_already: int, size_bytes: int) -> int:
    if size_bytes <= 0:
        return 100
    return math.ceil(processed_already / size_bytes * 100)


class ProgressAggregator:
    def __init__(self, view, connection_manager, *, close_delay: float = MODAL_CLOSE_DELAY):
        self.view = view
        self.connection_manager = connection_manager
        self.close_delay = close_delay
        self.uploading_files: Dict[str, ClientFileState] = {}
        self._close_task: Optional[asyncio.Task] = None

    async def initialize(self) -> None:
        self.connection_manager.configure_events(on_progress=self.on_progress)
        self.view.update_status(0)
        await self.update_current_files()

    async def on_progress(self, event: Dict[str, Any]) -> None:
        filename = event.get("filename")
        file = self.uploading_files.get(filename)
        if file is None:
            logger.warning(f"progress for {filename!r} which is not in the current batch, ignored")
            return
        if file.state is FileState.SETTLED:
            # batch already forced to 100
            logger.debug(f"late progress for settled {filename!r}, ignored")
            return

        percent = file_percent(int(event.get("processedAlready") or 0), file.size_bytes)
        if file.state is FileState.PENDING:
            file.state = FileState.IN_PROGRESS
        self.update_progress(file, percent)

        if percent < NEAR_COMPLETE_PERCENT or file.state is not FileState.IN_PROGRESS:
            return
        file.state = FileState.NEAR_COMPLETE
        logger.debug(f"{filename} near complete ({percent}%), refreshing listing")
        await self.update_current_files()

    def update_progress(self, file: ClientFileState, percent: int) -> int:
        file.percent = percent
        total = self.aggregate_percent()
        self.view.update_status(total)
        return total

    def aggregate_percent(self) -> int:
        return sum(f.percent for f in self.uploading_files.values())

    async def on_file_change(self, files: Iterable[LocalFile]) -> None:
        """Start a new batch; returns after every upload finished and the listing was re-read."""
        files = list(files)
        self.uploading_files.clear()

        self.view.open_modal()
        self.view.update_status(0)

        for f in files:
            self.uploading_files[f.name] = ClientFileState(name=f.name, size_bytes=f.size)

        # a failure propagates from here and leaves the modal open
        await asyncio.gather(*(self.connection_manager.upload_file(f) for f in files))

        self._settle()
        self.view.update_status(100)
        self._close_task = asyncio.create_task(self._close_modal_later())

        await self.update_current_files()

    def _settle(self) -> None:
        """
        The upload reply is authoritative: a file whose last progress push was
        throttled away (or that never reported at all) is complete anyway, so it
        is promoted to NEAR_COMPLETE at 100 % before the whole batch settles.
        """
        for st in self.uploading_files.values():
            if st.state in (FileState.PENDING, FileState.IN_PROGRESS):
                logger.debug(f"{st.name} finished at {st.percent}% without a near complete push")
                st.percent = 100
                st.state = FileState.NEAR_COMPLETE
            st.state = FileState.SETTLED

    async def _close_modal_later(self) -> None:
        await asyncio.sleep(self.close_delay)
        self.view.close_modal()

    async def wait_idle(self) -> None:
        if self._close_task is not None:
            await self._close_task

    async def update_current_files(self) -> None:
        files = await self.connection_manager.current_files()
        self.view.update_current_files(files)
