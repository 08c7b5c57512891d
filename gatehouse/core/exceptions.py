import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFound(AppException):
    def __init__(self, message: str = "Request not found"):
        super().__init__(message, status_code=404)


class InvalidState(AppException):
    """Transition or attachment not allowed from the record's current status."""

    def __init__(self, message: str, status_code: int = 409):
        super().__init__(message, status_code=status_code)


class StorageUnavailable(AppException):
    """The durable visitor data file could not be read or written."""

    def __init__(self, message: str = "Visitor data storage is unavailable"):
        super().__init__(message, status_code=503)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def _app_exception_handler(_: Request, exc: AppException):
        if isinstance(exc, StorageUnavailable):
            logger.error("storage unavailable: %s", exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(_: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "detail": str(exc)},
        )
