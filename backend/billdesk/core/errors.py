"""Domain errors and structured error responses.

Services raise the exceptions below; the handlers registered here turn them
(and any framework error) into one JSON shape:
``{"error": true, "status_code", "detail", "request_id"}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("billdesk")


class BillDeskError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BadRequestError(BillDeskError):
    pass


class NotFoundError(BillDeskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class PermissionDeniedError(BillDeskError):
    """Role gate failure."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Insufficient role for this operation"


class OwnershipError(BillDeskError):
    """Ownership gate failure: caller neither created nor is assigned."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied to this resource"


class AdminAlreadyExistsError(BillDeskError):
    default_detail = "An admin user already exists"


class InvalidTransitionError(BillDeskError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid state transition"


class ConflictError(BillDeskError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


def _error_body(request: Request, status_code: int, detail) -> dict:
    return {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "request_id": getattr(request.state, "request_id", None),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(BillDeskError)
    async def domain_exception_handler(request: Request, exc: BillDeskError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = _error_body(request, 422, "Validation error")
        body["errors"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error request_id=%s path=%s",
            getattr(request.state, "request_id", "-"),
            request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, 500, "Internal server error"),
        )
