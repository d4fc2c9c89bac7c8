import os
from dataclasses import dataclass

UPLOAD_DIR = os.path.expanduser(os.getenv("UPLOAD_DIR", "~/.liveuploader/downloads"))
THROTTLE_WINDOW_MS = int(os.getenv("THROTTLE_WINDOW_MS", "2000"))
PARTIAL_UPLOAD_POLICY = os.getenv("PARTIAL_UPLOAD_POLICY", "remove")  # remove | keep
FILENAME_POLICY = os.getenv("FILENAME_POLICY", "reject")              # reject | basename
STREAM_HIGH_WATER_MARK = int(os.getenv("STREAM_HIGH_WATER_MARK", str(256 * 1024)))

SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("SERVER_PORT", "3333"))
SSL_CERTFILE = os.getenv("SSL_CERTFILE") or None
SSL_KEYFILE = os.getenv("SSL_KEYFILE") or None


@dataclass(frozen=True)
class ServerSettings:
    upload_dir: str = UPLOAD_DIR
    throttle_window_ms: int = THROTTLE_WINDOW_MS
    partial_upload_policy: str = PARTIAL_UPLOAD_POLICY
    filename_policy: str = FILENAME_POLICY
    stream_high_water_mark: int = STREAM_HIGH_WATER_MARK

    def __post_init__(self):
        if self.throttle_window_ms < 0:
            raise ValueError("THROTTLE_WINDOW_MS must be >= 0")
        if self.partial_upload_policy not in ("remove", "keep"):
            raise ValueError(f"PARTIAL_UPLOAD_POLICY must be 'remove' or 'keep', got {self.partial_upload_policy!r}")
        if self.filename_policy not in ("reject", "basename"):
            raise ValueError(f"FILENAME_POLICY must be 'reject' or 'basename', got {self.filename_policy!r}")
        if self.stream_high_water_mark <= 0:
            raise ValueError("STREAM_HIGH_WATER_MARK must be > 0")
