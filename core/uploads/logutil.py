# core/uploads/logutil.py
import logging, os
from logging.handlers import RotatingFileHandler

_PACKAGE = "core.uploads"  # every module logger hangs below this one
_ready = False

def setup_once() -> logging.Logger:
    """Attach the package file handler the first time anyone asks for a logger."""
    global _ready
    pkg = logging.getLogger(_PACKAGE)
    if _ready or any(getattr(h, "_uploads_handler", False) for h in pkg.handlers):
        _ready = True
        return pkg

    path = os.environ.get("UPLOADS_LOG") or os.path.join(os.getcwd(), "uploads.log")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    handler = RotatingFileHandler(path, maxBytes=int(os.getenv("LOG_MAX_BYTES", "10485760")),
                                  backupCount=int(os.getenv("LOG_BACKUP_COUNT", "5")), encoding="utf-8")
    handler._uploads_handler = True
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    pkg.addHandler(handler)
    pkg.setLevel(os.getenv("UPLOADS_LOG_LEVEL", "DEBUG").upper())
    pkg.propagate = False
    pkg.debug(f"upload core logging to {path}")
    _ready = True
    return pkg

def get_logger(module: str | None = None) -> logging.Logger:
    pkg = setup_once()
    return pkg.getChild(module) if module else pkg
