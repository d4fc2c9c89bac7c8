# UploadServer/file_helper.py
import getpass
import math
import os
from datetime import datetime, timezone
from typing import List

from .schemas import FileStatus

_UNITS = ["B", "kB", "MB", "GB", "TB", "PB"]


def pretty_bytes(num: int) -> str:
    """Base 1000, three significant digits: 1054072 -> '1.05 MB'."""
    if num < 1:
        return f"{num} B"
    exponent = min(int(math.floor(math.log10(num) / 3)), len(_UNITS) - 1)
    value = float(f"{num / 1000 ** exponent:.3g}")
    return f"{value:g} {_UNITS[exponent]}"


def _birth_time(st: os.stat_result) -> float:
    # st_birthtime is missing on most linux filesystems
    return getattr(st, "st_birthtime", None) or st.st_mtime


def iso_utc(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_files_status(directory: str) -> List[FileStatus]:
    owner = getpass.getuser()
    out: List[FileStatus] = []
    for name in sorted(os.listdir(directory)):
        st = os.stat(os.path.join(directory, name))
        out.append(FileStatus(
            size=pretty_bytes(st.st_size),
            lastModified=iso_utc(_birth_time(st)),
            owner=owner,
            file=name,
        ))
    return out
