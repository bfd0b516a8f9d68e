"""JSON response envelope shared by all endpoints."""

from __future__ import annotations

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import DeployError


class FileRecord(BaseModel):
    """A file saved by a normal-mode upload.

    Attributes:
        path: Location relative to the export type directory.
        content_type: Content type declared by the client for the part.
        size: Bytes written.
    """

    path: str
    content_type: str
    size: int


class APIResponse(BaseModel):
    """Standard envelope: success flag plus a human-readable message."""

    success: bool
    message: str


class DeployResponse(APIResponse):
    """Envelope for upload results, listing the files that were saved."""

    files: list[FileRecord]


def send_response(
    success: bool,
    message: str,
    status_code: int = 200,
    files: list[FileRecord] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build an envelope response with the given status code.

    Args:
        success: Whether the request succeeded.
        message: Human-readable status message.
        status_code: HTTP status code.
        files: Upload manifest; adds a "files" array when given.
        headers: Extra response headers.
    """
    if files is not None:
        body = DeployResponse(success=success, message=message, files=files)
    else:
        body = APIResponse(success=success, message=message)
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


def error_response(exc: DeployError) -> JSONResponse:
    """Envelope for a request-level failure, using the error's status code."""
    return send_response(False, exc.message, exc.status_code)
