# core/uploads/errors.py


class UploadError(Exception):
    """Base class for everything that can fail an upload request."""


class UploadParserError(UploadError):
    """The multipart body could not be parsed (bad boundary, truncated body...)."""


class UnsafeFilenameError(UploadError):
    def __init__(self, filename: str, reason: str):
        super().__init__(f"unsafe filename {filename!r}: {reason}")
        self.filename = filename
        self.reason = reason


class UploadWriteError(UploadError):
    """Writing one file to disk failed; fatal for the whole request."""

    def __init__(self, filename: str, cause: OSError):
        super().__init__(f"failed to write {filename!r}: {cause}")
        self.filename = filename
        self.cause = cause
