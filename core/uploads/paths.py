# core/uploads/paths.py
import ntpath
import os
import posixpath

from .errors import UnsafeFilenameError

FILENAME_POLICIES = ("reject", "basename")


def _check_name(name: str) -> None:
    if not name or not name.strip():
        raise UnsafeFilenameError(name, "empty name")
    if "\x00" in name:
        raise UnsafeFilenameError(name, "NUL byte")
    if name in (".", ".."):
        raise UnsafeFilenameError(name, "parent directory traversal not allowed")


def safe_filename(filename: str, policy: str = "reject") -> str:
    """
    Validate a client supplied filename before it is joined to the upload dir.

    reject   -> anything carrying a directory part, an absolute path or '..' fails
    basename -> directory parts (posix or windows style) are stripped first
    """
    if policy not in FILENAME_POLICIES:
        raise ValueError(f"unknown filename policy: {policy}")

    if policy == "basename":
        name = ntpath.basename(posixpath.basename(filename or ""))
        _check_name(name)
        return name

    _check_name(filename)
    if os.path.isabs(filename) or ntpath.isabs(filename):
        raise UnsafeFilenameError(filename, "absolute path not allowed")
    if "/" in filename or "\\" in filename:
        raise UnsafeFilenameError(filename, "directory separators not allowed")
    return filename


def destination_path(directory: str, filename: str, policy: str = "reject") -> str:
    name = safe_filename(filename, policy)
    base = os.path.abspath(directory)
    full = os.path.abspath(os.path.join(base, name))
    if os.path.dirname(full) != base:
        raise UnsafeFilenameError(filename, "escapes the upload directory")
    return full
