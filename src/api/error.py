"""API error mapping

Use cases return Result errors; routes raise ClientError with the HTTP status
to use, and the handlers below render every error as
{"error": {"code", "message", "reason"}}.
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from libs.result import Error

logger = logging.getLogger(__name__)


class ClientError(Exception):
    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


def error_body(error: Error) -> dict:
    return {"error": error.model_dump(exclude_none=True)}


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.error))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                Error(
                    code="VALIDATION_ERROR",
                    message="Invalid request parameters",
                    reason=f"{location}: {first.get('msg', '')}" if location else None,
                )
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(Error(code="INTERNAL_ERROR", message="Internal server error")),
        )
