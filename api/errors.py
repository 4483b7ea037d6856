"""Error envelope for API responses.

Every error leaves the API as ``{"success": false, "error": "..."}``.
Server errors carry the underlying message in ``message`` unless the
service runs in production.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import is_production
from database.exceptions import DatabaseError, PoolTimeoutError

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "Server error"

def _show_details(request: Request) -> bool:
    return not is_production(request.app.state.settings)

def format_error_response(error: Any, **extra: Any) -> Dict[str, Any]:
    """Build the error envelope."""
    if isinstance(error, dict):
        return {'success': False, **error, **extra}
    return {'success': False, 'error': error, **extra}

def format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    messages = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path'))
        message = error.get('msg', 'Invalid value')
        messages.append(f"{location}: {message}" if location else message)
    return '; '.join(messages) or "Invalid request"

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap HTTP errors, including unmatched routes, in the envelope."""
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == 'Not Found':
        detail = "API endpoint not found"
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and detail == 'Method Not Allowed':
        detail = "Method not allowed"

    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(detail),
        headers=getattr(exc, 'headers', None)
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 instead of FastAPI's 422."""
    message = format_validation_errors(exc)
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=format_error_response(message)
    )

async def database_exception_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Turn database failures (pool timeouts included) into 500s."""
    if isinstance(exc, PoolTimeoutError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
    extra = {'message': str(exc)} if _show_details(request) else {}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_error_response(SERVER_ERROR_MESSAGE, **extra)
    )

async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything a route did not translate."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    extra = {'message': str(exc)} if _show_details(request) else {}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_error_response(SERVER_ERROR_MESSAGE, **extra)
    )

def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on an app."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DatabaseError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
