"""Error taxonomy shared by the ingest pipeline and the HTTP layer."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .logging import get_logger


class ReelcastError(Exception):
    """Base exception for all Reelcast errors.

    ``message`` is safe to show to callers. ``detail`` carries operator
    diagnostics (for example raw ffmpeg stderr) and is not a stable contract.
    """

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Any = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, "detail": self.detail}


class BadInput(ReelcastError):
    kind = "bad_input"
    status_code = status.HTTP_400_BAD_REQUEST


class PayloadTooLarge(BadInput):
    kind = "payload_too_large"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class UnsupportedMediaType(BadInput):
    kind = "unsupported_media_type"
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class Unauthorized(ReelcastError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(ReelcastError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ReelcastError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ProcessingFailed(ReelcastError):
    """An external media tool exited non-zero or produced unusable output."""

    kind = "processing_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class MalformedMedia(ProcessingFailed):
    """The probe ran but the file carries no usable video geometry."""

    kind = "malformed_media"


class StorageUnavailable(ReelcastError):
    """Scratch filesystem, object storage or metadata write failed."""

    kind = "storage_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _handle_reelcast_error(request: Request, exc: ReelcastError) -> JSONResponse:
    logger = get_logger(component="http", path=request.url.path)
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request_failed", kind=exc.kind, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReelcastError, _handle_reelcast_error)  # type: ignore[arg-type]


__all__ = [
    "ReelcastError",
    "BadInput",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "ProcessingFailed",
    "MalformedMedia",
    "StorageUnavailable",
    "install_error_handlers",
]
