from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


class GadgetError(Exception):
    """Base class for recoverable domain errors rendered as an ``ErrorEnvelope``."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "gadget_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(GadgetError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidState(GadgetError):
    code = "invalid_state"


class Conflict(GadgetError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class BadRequest(GadgetError):
    code = "bad_request"


class NoPendingSequence(GadgetError):
    code = "no_pending_sequence"


class Expired(GadgetError):
    code = "expired"


class TooManyAttempts(GadgetError):
    code = "too_many_attempts"


class InvalidCode(GadgetError):
    code = "invalid_code"


class StorageError(GadgetError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "storage_error"


async def gadget_error_handler(request: Request, exc: GadgetError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError
    from fastapi.encoders import jsonable_encoder

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc
