# common/errors.py
import logging

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def _envelope(service_name: str, request: Request, status_code: int, detail) -> dict:
    return {
        "service": service_name,
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "detail": detail,
    }


def register_exception_handlers(app: FastAPI, service_name: str) -> None:
    """
    Install the shared JSON error envelope on a service application.

    Parameters
    ----------
    app : FastAPI
        The service application.
    service_name : str
        Short name reported in every error payload (e.g. 'rooms').
    """

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.detail}",
                extra={"service": service_name, "status_code": exc.status_code},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(service_name, request, exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            f"Validation error on {request.url.path}",
            extra={"service": service_name, "path": request.url.path},
        )
        content = _envelope(
            service_name,
            request,
            422,
            "Invalid request data",
        )
        content["errors"] = [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ]
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={"service": service_name, "path": request.url.path},
        )
        return JSONResponse(
            status_code=500,
            content=_envelope(service_name, request, 500, GENERIC_ERROR_MESSAGE),
        )
