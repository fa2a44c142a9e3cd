"""Error sanitizing and the FastAPI exception handlers built on it."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from localdeals.config import settings
from localdeals.core.exceptions import AuthError, LocalDealsException

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again later."

# Substrings that mark a message as safe to show outside development
SAFE_MESSAGE_MARKERS = (
    "not found",
    "Missing",
    "Invalid",
    "required",
    "Unauthorized",
    "Forbidden",
    "permissions",
)


def sanitize_error(error: BaseException, debug: bool | None = None) -> str:
    """Return a client-safe message for an unexpected exception.

    In debug mode the raw message is returned. Otherwise only messages
    containing one of SAFE_MESSAGE_MARKERS pass through.
    """
    if debug is None:
        debug = settings.DEBUG
    message = str(error)
    if debug:
        return message
    if any(marker in message for marker in SAFE_MESSAGE_MARKERS):
        return message
    return GENERIC_ERROR_MESSAGE


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.info("auth_rejected", path=request.url.path, status=exc.status_code, reason=exc.message)
    return error_response(exc.message, exc.status_code)


async def domain_error_handler(request: Request, exc: LocalDealsException) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, status=exc.status_code, reason=exc.message)
    return error_response(exc.message, exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map Pydantic body/query errors onto the 400 envelope."""
    missing = []
    for err in exc.errors():
        if err.get("type") == "missing":
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
            missing.append(".".join(loc) if loc else "body")
    if missing:
        return error_response(f"Missing required fields: {', '.join(missing)}", 400)

    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
    detail = first.get("msg", "Invalid request")
    if detail.startswith("Value error, "):
        detail = detail[len("Value error, "):]
    message = f"Invalid {field}: {detail}" if field else f"Invalid request: {detail}"
    return error_response(message, 400)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(str(exc.detail), exc.status_code)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return error_response(sanitize_error(exc), 500)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every handler above to the application."""
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(LocalDealsException, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
