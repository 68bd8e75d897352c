"""Global error handlers.

Pipeline failures render as ``{"status": "error", "kind": ..., "detail": ...}``
with the status code carried by the exception class.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from badgeflow.errors import PipelineError

logger = structlog.get_logger()


def error_body(kind: str, detail: str) -> dict[str, Any]:
    return {"status": "error", "kind": kind, "detail": detail}


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("pipeline_error", path=request.url.path, kind=exc.kind, error=exc.detail)
        else:
            logger.info("request_rejected", path=request.url.path, kind=exc.kind, status_code=exc.status_code)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.detail))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("http_error", str(exc.detail)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Schema-level payload errors are reported like any other validation failure."""
        body = error_body("validation_error", "Validation error")
        body["errors"] = exc.errors()
        return JSONResponse(status_code=400, content=jsonable_encoder(body, custom_encoder={Exception: str}))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("internal_error", "Internal server error"),
        )

