# UploadServer/websocket_progress.py
from __future__ import annotations
import json, uuid
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .logutil import get_logger, bind, safe_preview
logger = get_logger("server.websocket_progress", file_basename="progress_ws")

router = APIRouter()


async def _ws_send(ws: WebSocket, payload: Dict[str, Any], log):
	"""Send JSON and log payload type/size."""
	txt = json.dumps(payload, separators=(",", ":"), default=str)
	await ws.send_text(txt)
	log.debug("ws.send", extra={"payload_type": payload.get("type"),
								"event": payload.get("event"),
								"json_bytes": len(txt)})


class WebSocketSubscriber:
	"""Push-channel subscriber backed by one websocket connection."""

	def __init__(self, ws: WebSocket, log):
		self.ws = ws
		self.log = log

	async def send_event(self, event_name: str, payload: Dict[str, Any]) -> None:
		await _ws_send(self.ws, {"type": "event", "event": event_name, "data": payload}, self.log)


@router.websocket("/ws/progress")
async def progress_ws(ws: WebSocket):
	await ws.accept()
	wsid = uuid.uuid4().hex[:8]
	client = f"{ws.client.host}:{ws.client.port}" if ws.client else None
	session_id = ws.query_params.get("sessionId") or uuid.uuid4().hex
	log = bind(logger, wsid=wsid, session_id=session_id, client=client)

	registry = ws.app.state.registry
	sub = WebSocketSubscriber(ws, log)
	registry.register(session_id, sub)
	log.info("ws.connect", extra={"path": "/ws/progress"})

	actions = {
		"ping": lambda r: _ws_send(ws, {"type": "pong", "req_id": r.get("req_id")}, log),
	}
	try:
		await _ws_send(ws, {"type": "session", "sessionId": session_id}, log)
		while True:
			raw = await ws.receive_text()
			try:
				req = json.loads(raw)
			except ValueError:
				log.warning("ws.recv.bad_json", extra={"raw": safe_preview(raw, limit=120)})
				await _ws_send(ws, {"type": "error", "error": "Invalid JSON"}, log); continue
			if not isinstance(req, dict):
				await _ws_send(ws, {"type": "error", "error": "Expected a JSON object"}, log); continue
			act = str(req.get("action") or "").lower()
			fn = actions.get(act)
			if not fn:
				await _ws_send(ws, {"type": "error", "req_id": req.get("req_id"), "error": f"Unknown action '{act}'"}, log); continue
			await fn(req)
	except WebSocketDisconnect:
		pass
	finally:
		registry.unregister(session_id, sub)
		log.info("ws.disconnect")
