# UploadServer/logutil.py
from __future__ import annotations
import json, logging, os, time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style

# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

_LEVEL_COLORS = {
    "DEBUG": Fore.BLUE,
    "INFO": Fore.GREEN,
    "WARNING": Fore.YELLOW,
    "ERROR": Fore.RED,
    "CRITICAL": Style.BRIGHT + Fore.RED,
}

def extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}

def safe_preview(val, *, limit: int = 256) -> str:
    s = str(val)
    return s if len(s) <= limit else s[:limit] + "…"

class JSONLFormatter(logging.Formatter):
    """One compact JSON object per line: ts (epoch ms), lvl, name, msg, then the extras."""
    def format(self, record: logging.LogRecord) -> str:
        doc = {"ts": int(record.created * 1000), "lvl": record.levelname,
               "name": record.name, "msg": record.getMessage()}
        for k, v in extra_fields(record).items():
            try:
                json.dumps(v)
            except (TypeError, ValueError):
                v = repr(v)
            doc[k] = v
        if record.exc_info:
            doc["exc"] = self.formatException(record.exc_info)
        return json.dumps(doc, separators=(",", ":"), default=str)

class ConsoleFormatter(logging.Formatter):
    """`HH:MM:SS LEVEL [name] msg k=v ...`, level coloured unless NO_COLOR is set."""
    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        lvl = record.levelname.ljust(5)
        if self.color:
            lvl = f"{_LEVEL_COLORS.get(record.levelname, '')}{lvl}{Style.RESET_ALL}"
        parts = [time.strftime("%H:%M:%S", time.localtime(record.created)), lvl,
                 f"[{record.name}]", record.getMessage()]
        parts += [f"{k}={safe_preview(v, limit=160)}" for k, v in extra_fields(record).items()]
        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line

def _console_handler() -> logging.Handler:
    h = logging.StreamHandler()
    h.setLevel(os.getenv("LOG_LEVEL_CONSOLE", "INFO").upper())
    h.setFormatter(ConsoleFormatter(color=os.getenv("NO_COLOR") is None))
    return h

def _file_handler(log_dir: str, file_basename: str) -> logging.Handler:
    os.makedirs(log_dir, exist_ok=True)
    h = RotatingFileHandler(os.path.join(log_dir, f"{file_basename}.log"),
                            maxBytes=int(os.getenv("LOG_MAX_BYTES", "10485760")),
                            backupCount=int(os.getenv("LOG_BACKUP_COUNT", "5")),
                            encoding="utf-8")
    h.setLevel(os.getenv("LOG_LEVEL_FILE", "DEBUG").upper())
    h.setFormatter(JSONLFormatter())
    return h

def get_logger(name: str, file_basename: str = "server", *,
               level: str | None = None, log_dir: str | None = None) -> logging.Logger:
    """
    Logger writing human lines to the console and JSON Lines to
    `<LOG_DIR>/<file_basename>.log` (rotated, 10MB x 5 unless overridden).
    Env knobs: LOG_LEVEL, LOG_LEVEL_CONSOLE, LOG_LEVEL_FILE, LOG_DIR,
    LOG_MAX_BYTES, LOG_BACKUP_COUNT, NO_COLOR.
    """
    logger = logging.getLogger(name)
    if getattr(logger, "_logutil_configured", False):
        return logger
    logger.setLevel((level or os.getenv("LOG_LEVEL", "DEBUG")).upper())
    logger.addHandler(_console_handler())
    logger.addHandler(_file_handler(log_dir or os.getenv("LOG_DIR", "logs"), file_basename))
    logger.propagate = False
    logger._logutil_configured = True  # type: ignore[attr-defined]
    return logger

class ContextAdapter(logging.LoggerAdapter):
    """Carries bound context (wsid, session_id, ...) into every record's extras."""
    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

def bind(logger: logging.Logger | ContextAdapter, **ctx) -> ContextAdapter:
    if isinstance(logger, ContextAdapter):
        return ContextAdapter(logger.logger, {**logger.extra, **ctx})
    return ContextAdapter(logger, ctx)

@contextmanager
def span(logger: logging.Logger | ContextAdapter, event: str, **fields):
    """`<event>.begin`, then `<event>.end` with dur_ms, or `<event>.error` with the traceback."""
    t0 = time.perf_counter()
    logger.info(f"{event}.begin", extra=fields)
    try:
        yield
    except Exception:
        logger.exception(f"{event}.error", extra={**fields, "dur_ms": int((time.perf_counter() - t0) * 1000)})
        raise
    logger.info(f"{event}.end", extra={**fields, "dur_ms": int((time.perf_counter() - t0) * 1000)})
