# client/connection_manager.py
import asyncio
from typing import Any, Callable, Dict, List

from .api_client import APIClient
from .progress_ws_client import ON_UPLOAD_EVENT, ProgressWSClient


class ConnectionManager:
    """HTTP calls plus the push channel, as one object the aggregator talks to."""

    def __init__(self, api: APIClient, ws: ProgressWSClient):
        self.api = api
        self.ws = ws

    def configure_events(self, on_progress: Callable[[Dict[str, Any]], Any]) -> None:
        self.ws.on(ON_UPLOAD_EVENT, on_progress)

    async def open(self) -> str:
        return await self.ws.connect()

    async def close(self) -> None:
        await self.ws.close()

    async def upload_file(self, file) -> Dict[str, Any]:
        if not self.ws.session_id:
            raise RuntimeError("push channel not open, no session id to upload under")
        # requests blocks; a worker thread per upload keeps the batch concurrent
        return await asyncio.to_thread(self.api.upload_file, self.ws.session_id, file.path, file.name)

    async def current_files(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.api.current_files)
