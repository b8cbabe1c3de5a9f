import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """An identity, storage or payment provider call failed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackupFormatError(ValueError):
    """The backup document does not have the expected shape."""


class DocumentRenderError(RuntimeError):
    pass


def _body(request: Request, message: str, **extra) -> dict:
    body = {"message": message, **extra}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return body


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(request, "Validation error", details=jsonable_encoder(exc.errors())),
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(request, message),
        headers=getattr(exc, "headers", None),
    )

async def integrity_exception_handler(request: Request, exc: IntegrityError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_body(request, "Database conflict. A record with this identifier likely already exists."),
    )

async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body(request, "Internal server error"),
    )

async def provider_exception_handler(request: Request, exc: ProviderError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=_body(request, exc.message),
    )

async def backup_format_exception_handler(request: Request, exc: BackupFormatError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(request, f"Invalid backup file: {exc}"),
    )
