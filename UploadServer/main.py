import os
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.uploads.channel import ProgressChannel, SubscriberRegistry

from .config import ServerSettings
from .logutil import get_logger
from .routes import router as upload_router
from .websocket_progress import router as progress_ws_router

logger = get_logger("server.main", file_basename="server")


def create_app(settings: Optional[ServerSettings] = None, *,
               clock: Optional[Callable[[], float]] = None) -> FastAPI:
    """Build an isolated app: its own subscriber registry, channel and settings."""
    settings = settings or ServerSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        os.makedirs(settings.upload_dir, exist_ok=True)
        logger.info("server.startup", extra={"upload_dir": settings.upload_dir,
                                             "throttle_window_ms": settings.throttle_window_ms,
                                             "partial_upload_policy": settings.partial_upload_policy,
                                             "filename_policy": settings.filename_policy})
        yield
        logger.info("server.shutdown", extra={"subscribed_sessions": len(app.state.registry)})

    app = FastAPI(title="LiveUploader API", version="1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = SubscriberRegistry()
    app.state.channel = ProgressChannel(app.state.registry)
    app.state.clock = clock

    @app.middleware("http")
    async def _cors(request: Request, call_next):
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request.error", extra={"method": request.method, "path": request.url.path})
            response = JSONResponse({"error": "internal server error"}, status_code=500)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    # websocket first, the upload router is a catch-all
    app.include_router(progress_ws_router)
    app.include_router(upload_router)
    return app


app = create_app()
