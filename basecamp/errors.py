"""Map failures onto the API's JSON error bodies.

Validation failures and anything unclassified become a 400 with a fixed
message. Field-level detail is never returned to the caller.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)

INVALID_REQUEST = "Invalid request"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("invalid_request", path=request.url.path, errors=len(exc.errors()))
        return error_response(400, INVALID_REQUEST)

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("invalid_request", path=request.url.path, errors=exc.error_count())
        return error_response(400, INVALID_REQUEST)

    @app.middleware("http")
    async def unclassified_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "unhandled_exception",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                exc_info=exc,
            )
            return error_response(400, INVALID_REQUEST)
