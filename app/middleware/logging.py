import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = {"/health"}

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and logs its outcome and latency.

    A client supplied X-Request-ID is reused so exam clients can correlate
    autosave retries with server logs.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        line = f"[{request_id}] {request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"{line} failed after {_elapsed_ms(started)}ms", extra={"request_id": request_id})
            raise

        duration_ms = _elapsed_ms(started)
        cache_status = getattr(request.state, "cache_status", None)
        if cache_status:
            line = f"{line} [cache {cache_status}]"

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        elif request.url.path in QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            f"{line} -> {response.status_code} in {duration_ms}ms",
            extra={"request_id": request_id, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
