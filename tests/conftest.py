import os
import sys
import tempfile

# log files go to a scratch dir; must happen before any project module is imported
_SCRATCH = tempfile.mkdtemp(prefix="liveuploader-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("UPLOADS_LOG", os.path.join(_SCRATCH, "logs", "uploads.log"))
os.environ.setdefault("CLIENT_LOG", os.path.join(_SCRATCH, "client.log"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_SCRATCH, "uploads"))
os.environ.setdefault("NO_COLOR", "1")
os.environ.setdefault("USER", "tester")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

BOUNDARY = "----liveuploader-test-boundary"


def multipart_body(files, fields=None, boundary=BOUNDARY):
    """files: list of (field_name, filename, bytes). Returns (headers, body)."""
    out = b""
    for name, value in (fields or {}).items():
        out += (f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{name}"\r\n\r\n').encode() + value + b"\r\n"
    for field_name, filename, content in files:
        out += (f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"\r\n'
                f"Content-Type: application/octet-stream\r\n\r\n").encode() + content + b"\r\n"
    out += f"--{boundary}--\r\n".encode()
    headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
    return headers, out


def split(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks):
    for c in chunks:
        yield c


class RecordingChannel:
    """Stands in for ProgressChannel; remembers every broadcast."""

    def __init__(self, clock=None):
        self.calls = []
        self.clock = clock

    async def broadcast_to_session(self, session_id, event_name, payload):
        at = self.clock.now if self.clock is not None else None
        self.calls.append((session_id, event_name, dict(payload), at))
        return 1

    def values(self, filename=None):
        return [p["processedAlready"] for _, _, p, _ in self.calls
                if filename is None or p["filename"] == filename]


class StepClock:
    """Callable clock that returns scripted values and remembers the last one."""

    def __init__(self, values):
        self._it = iter(values)
        self.now = None

    def __call__(self):
        self.now = next(self._it)
        return self.now


class RecordingSubscriber:
    def __init__(self):
        self.events = []

    async def send_event(self, event_name, payload):
        self.events.append((event_name, payload))


class FailingSubscriber:
    async def send_event(self, event_name, payload):
        raise ConnectionResetError("peer gone")


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d
