"""Map domain errors to JSON responses of the form {"detail": ..., "code": ...}."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from investor_platform.domain.errors import DependencyFailure, PlatformError, ValidationError

logger = logging.getLogger(__name__)


def _field_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PlatformError)
    async def platform_error_handler(request: Request, exc: PlatformError):
        if exc.status_code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        if errors:
            first = errors[0]
            field = ".".join(p for p in first["loc"] if p not in ("body", "query", "path"))
            detail = f"{field}: {first['msg']}" if field else first["msg"]
        else:
            detail = "Invalid request"
        payload = ValidationError(detail).to_payload()
        payload["errors"] = errors
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        failure = DependencyFailure()
        return JSONResponse(status_code=failure.status_code, content=failure.to_payload())
