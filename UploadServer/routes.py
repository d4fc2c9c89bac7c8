# UploadServer/routes.py
from enum import Enum

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from core.uploads.errors import UnsafeFilenameError, UploadParserError, UploadWriteError
from core.uploads.handler import UploadHandler
from core.uploads.state import UploadSession

from .file_helper import get_files_status
from .logutil import bind, get_logger, span
from .schemas import ErrorOut, UploadResult

logger = get_logger("server.routes", file_basename="server")

router = APIRouter()

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class RequestKind(Enum):
    LIST = "list"
    UPLOAD = "upload"
    PREFLIGHT = "preflight"
    OTHER = "other"


def classify(method: str, path: str) -> RequestKind:
    method = method.upper()
    if method == "OPTIONS":
        return RequestKind.PREFLIGHT
    if path.strip("/") == "":
        if method == "GET":
            return RequestKind.LIST
        if method == "POST":
            return RequestKind.UPLOAD
    return RequestKind.OTHER


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(ErrorOut(error=message).model_dump(), status_code=status)


@router.api_route("/{path:path}", methods=ALL_METHODS)
async def dispatch(request: Request, path: str):
    kind = classify(request.method, path)
    logger.debug("request", extra={"method": request.method, "path": "/" + path, "kind": kind.value})

    if kind is RequestKind.LIST:
        return await _list_files(request)
    elif kind is RequestKind.UPLOAD:
        return await _upload(request)
    elif kind is RequestKind.PREFLIGHT:
        return Response(status_code=204)
    elif kind is RequestKind.OTHER:
        return PlainTextResponse("Hello World")
    raise AssertionError(f"unhandled request kind {kind}")


async def _list_files(request: Request) -> JSONResponse:
    settings = request.app.state.settings
    files = await run_in_threadpool(get_files_status, settings.upload_dir)
    return JSONResponse([f.model_dump() for f in files])


async def _upload(request: Request) -> Response:
    session_id = request.query_params.get("sessionId")
    if not session_id:
        logger.warning("upload.rejected", extra={"reason": "missing sessionId"})
        return _error(400, "sessionId query parameter is required")

    settings = request.app.state.settings
    log = bind(logger, session_id=session_id)
    session = UploadSession(
        session_id=session_id,
        destination_directory=settings.upload_dir,
        throttle_window_ms=settings.throttle_window_ms,
    )
    handler = UploadHandler(
        request.app.state.channel, session,
        clock=request.app.state.clock,
        partial_policy=settings.partial_upload_policy,
        filename_policy=settings.filename_policy,
        high_water_mark=settings.stream_high_water_mark,
    )

    def _all_done():
        log.info("upload.all_files_complete", extra={"files": len(handler.transfers)})

    try:
        with span(log, "upload.request"):
            await handler.process_request(request.headers, request.stream(), on_all_files_complete=_all_done)
    except (UploadParserError, UnsafeFilenameError) as e:
        return _error(400, str(e))
    except UploadWriteError as e:
        return _error(500, str(e))
    except ClientDisconnect:
        log.warning("upload.aborted", extra={"reason": "client disconnected",
                                             "policy": settings.partial_upload_policy})
        return _error(400, "client disconnected")

    return JSONResponse(UploadResult().model_dump())
