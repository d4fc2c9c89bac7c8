from pydantic import BaseModel


class FileStatus(BaseModel):
    size: str
    lastModified: str
    owner: str
    file: str


class UploadResult(BaseModel):
    result: str = "Files uploaded with success!"


class ErrorOut(BaseModel):
    error: str
