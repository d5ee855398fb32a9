from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.exceptions import DomainError
from app.schemas.response import ErrorResponse, ErrorDetail
from datetime import datetime
import logging
import uuid

logger = logging.getLogger(__name__)

def _get_error_code(status_code: int) -> str:
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_SERVER_ERROR",
        501: "NOT_IMPLEMENTED",
    }
    return code_map.get(status_code, f"HTTP_{status_code}")

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _error_response(request: Request, request_id: str, code: str, message: str, details=None) -> dict:
    error_response = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details),
        timestamp=datetime.utcnow().isoformat(),
        path=str(request.url),
        request_id=request_id
    )
    return jsonable_encoder(error_response)

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    errors = jsonable_encoder(exc.errors())
    content = _error_response(
        request, request_id, "VALIDATION_ERROR", "Request validation failed",
        details={"validation_errors": errors}
    )
    logger.warning(f"[{request_id}] Validation error: {errors}", extra={"request_id": request_id})
    return JSONResponse(status_code=422, content=content)

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    request_id = _request_id(request)
    if isinstance(exc, DomainError):
        code, details = exc.code, exc.details
    else:
        code, details = _get_error_code(exc.status_code), None

    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    content = _error_response(request, request_id, code, message, details=details)
    logger.warning(f"[{request_id}] HTTP {exc.status_code} {code}: {message}", extra={"request_id": request_id})
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, StarletteHTTPException):
        return await http_exception_handler(request, exc)

    request_id = _request_id(request)
    content = _error_response(
        request, request_id, "INTERNAL_SERVER_ERROR", "An unexpected error occurred",
        details={"error_type": type(exc).__name__}
    )
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True, extra={"request_id": request_id})
    return JSONResponse(status_code=500, content=content)
