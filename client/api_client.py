# client/api_client.py
import os
from typing import Any, Dict, List, Optional

import requests

from .log import get_logger

logger = get_logger("api")


class APIError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message


class APIClient:
    def __init__(self, base_url: str, *, verify: bool = True, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.verify = verify
        self.timeout = timeout
        self.session = requests.Session()

    def _check(self, r: requests.Response) -> None:
        if r.ok:
            return
        try:
            msg = r.json().get("error") or r.text
        except ValueError:
            msg = r.text
        logger.warning(f"{r.request.method} {r.url} -> {r.status_code}: {msg}")
        raise APIError(r.status_code, msg)

    # ---------- listing ----------
    def current_files(self) -> List[Dict[str, Any]]:
        r = self.session.get(f"{self.base_url}/", verify=self.verify, timeout=self.timeout)
        self._check(r)
        return r.json()

    # ---------- upload ----------
    def upload_file(self, session_id: str, path: str, name: Optional[str] = None) -> Dict[str, Any]:
        """POST one file as multipart/form-data; progress arrives on the session's push channel."""
        name = name or os.path.basename(path)
        with open(path, "rb") as fh:
            r = self.session.post(f"{self.base_url}/", params={"sessionId": session_id},
                                  files={"files": (name, fh, "application/octet-stream")},
                                  verify=self.verify, timeout=self.timeout)
        self._check(r)
        logger.info(f"uploaded {name} ({os.path.getsize(path)} bytes) session={session_id}")
        return r.json()
