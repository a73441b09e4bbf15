import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class AppError(HTTPException):
    """Base class for errors raised by the service layer.

    Each subclass pins an HTTP status and a fallback message, so services can
    raise ``NotFound("Task not found.")`` and the handlers below turn it into
    ``{"message": ...}`` with the right status code.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=message or self.message,
            headers=headers,
        )


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request."


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required."


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You are not allowed to perform this action."


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found."


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Request conflicts with existing data."


class InternalError(AppError):
    pass


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "invalid"))
    return "; ".join(parts) or ValidationError.message


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"message": _format_validation_errors(exc)},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error(request: Request, exc: IntegrityError):
        logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
        return JSONResponse(
            status_code=Conflict.status_code,
            content={"message": Conflict.message},
        )

    @app.exception_handler(NoResultFound)
    async def no_result(request: Request, exc: NoResultFound):
        return JSONResponse(
            status_code=NotFound.status_code,
            content={"message": NotFound.message},
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError):
        logger.error("store_error", path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=InternalError.status_code,
            content={"message": InternalError.message},
        )
