# client/progress_ws_client.py
import asyncio, inspect, json
from contextlib import suppress
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import websockets

from .log import get_logger

logger = get_logger("progress_ws")

ON_UPLOAD_EVENT = "file-uploaded"


def _make_ws_url(base_url: str, session_id: Optional[str] = None) -> str:
	url = base_url.rstrip("/").replace("http", "ws", 1) + "/ws/progress"
	if session_id:
		url += f"?sessionId={quote(session_id)}"
	return url


class ProgressWSClient:
	"""Push-channel subscriber: learns its session id, then dispatches named events."""

	def __init__(self, base_url: str, session_id: Optional[str] = None, *, ssl_context=None):
		self.base_url = base_url.rstrip("/")
		self.session_id = session_id
		self.ssl_context = ssl_context
		self.ws = None
		self._handlers: Dict[str, List[Callable[[Dict[str, Any]], Any]]] = {}
		self._reader: Optional[asyncio.Task] = None

	def on(self, event_name: str, handler: Callable[[Dict[str, Any]], Any]) -> None:
		self._handlers.setdefault(event_name, []).append(handler)

	async def connect(self) -> str:
		kwargs = {"ssl": self.ssl_context} if self.ssl_context is not None else {}
		self.ws = await websockets.connect(_make_ws_url(self.base_url, self.session_id), **kwargs)
		hello = json.loads(await self.ws.recv())
		if hello.get("type") != "session":
			await self.ws.close()
			raise ConnectionError(f"unexpected hello frame: {hello!r}")
		self.session_id = hello["sessionId"]
		logger.info(f"push channel open session={self.session_id}")
		self._reader = asyncio.create_task(self._read_loop())
		return self.session_id

	async def _read_loop(self) -> None:
		try:
			async for raw in self.ws:
				try:
					msg = json.loads(raw)
				except ValueError:
					logger.warning(f"dropping non-JSON frame: {raw[:120]!r}")
					continue
				await self.dispatch(msg)
		except websockets.ConnectionClosed as e:
			logger.info(f"push channel closed: {e}")

	async def dispatch(self, msg: Dict[str, Any]) -> None:
		mtype = msg.get("type")
		if mtype == "event":
			for handler in self._handlers.get(msg.get("event"), ()):
				# one failing handler must not end the read loop
				try:
					result = handler(msg.get("data") or {})
					if inspect.isawaitable(result):
						await result
				except Exception:
					logger.exception(f"handler for {msg.get('event')} failed")
		elif mtype == "error":
			logger.warning(f"server error frame: {msg.get('error')}")
		else:
			logger.debug(f"ignored frame type={mtype}")

	async def close(self) -> None:
		if self.ws is not None:
			await self.ws.close()
		if self._reader is not None:
			self._reader.cancel()
			with suppress(asyncio.CancelledError):
				await self._reader
		self.ws = None
		self._reader = None
