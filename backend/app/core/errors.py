"""Error taxonomy for the contact service and the handlers that render it.

Validation and attachment problems are client errors and always come back
as HTTP 400 with the violations listed. Storage and unexpected faults are
logged in full server-side and answered with a generic message.
"""
from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler as default_http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class ContactServiceError(Exception):
    """Base class for errors raised by the contact service."""


class SubmissionValidationError(ContactServiceError):
    def __init__(self, errors: list[dict[str, Any]]):
        super().__init__(f"{len(errors)} validation error(s)")
        self.errors = errors


class AttachmentRejectedError(SubmissionValidationError):
    def __init__(self, msg: str, *, field: str = "screenshot"):
        super().__init__([field_error(field, msg)])
        self.reason = msg


class StorageError(ContactServiceError):
    """The record store could not complete a read or write."""


class DuplicateContactError(StorageError):
    def __init__(self, contact_id: str):
        super().__init__(f"Contact {contact_id} already exists")
        self.contact_id = contact_id


class AuthorizationError(ContactServiceError):
    pass


class ImportParseError(ContactServiceError):
    """The legacy record file exists but is not a JSON array of objects."""


def field_error(path: str, msg: str, *, value: Any = None, location: str = "body") -> dict[str, Any]:
    err: dict[str, Any] = {"type": "field", "msg": msg, "path": path, "location": location}
    if value is not None:
        err["value"] = value
    return err


def errors_from_pydantic(raw_errors: list[dict[str, Any]], *, location: str = "body") -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for e in raw_errors:
        loc = [str(part) for part in e.get("loc", ()) if part not in ("body", "query", "header")]
        path = ".".join(loc) or "body"
        out.append(field_error(path, str(e.get("msg", "Invalid value")), location=location))
    return out


def register_exception_handlers(app: FastAPI) -> None:
    """Register the contact service exception handlers on the app."""

    @app.exception_handler(SubmissionValidationError)
    async def submission_rejected_handler(request: Request, exc: SubmissionValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": exc.errors})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"errors": errors_from_pydantic(list(exc.errors()))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Bodies the framework cannot parse (bad multipart, bad JSON) surface here as a bare 400.
        if exc.status_code == status.HTTP_400_BAD_REQUEST:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"errors": [field_error("body", str(exc.detail))]},
            )
        return await default_http_exception_handler(request, exc)

    @app.exception_handler(AuthorizationError)
    async def authorization_handler(request: Request, exc: AuthorizationError):
        return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "storage_failure",
            method=request.method,
            path=request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": "Internal error"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": "Server error"},
        )
