from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.logging_config import get_logger

logger = get_logger("errors")


class HelpdeskError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class PayloadValidationError(HelpdeskError):
    """Malformed inbound payload. Raised before any write happens."""

    status_code = 400


class AuthError(HelpdeskError):
    status_code = 401


class NotFoundError(HelpdeskError):
    """Missing row, or a row owned by another tenant."""

    status_code = 404


class ConflictError(HelpdeskError):
    status_code = 409


class TransientInfrastructureError(HelpdeskError):
    """Degraded optional capability. Logged and swallowed by callers."""

    status_code = 503


class FatalError(HelpdeskError):
    status_code = 500


async def helpdesk_error_handler(request: Request, exc: HelpdeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            extra={"context": {"path": request.url.path, "error": exc.message, "details": exc.details}},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


def format_validation_errors(errors) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in errors
    ]


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": format_validation_errors(exc.errors())},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HelpdeskError, helpdesk_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
