"""
Per-request log context, access logging and timing headers.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from pickup.core.logging import get_logger, reset_log_context
from pickup.core.security import PLAYER_ID_HEADER

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Health checkers hit these every few seconds; keep them out of the info log
QUIET_PATHS = frozenset({"/health", "/metrics"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every log line of a request with its request id and the caller's
    claimed player id, then logs one access line with the duration.

    A request id sent by the gateway is reused so logs correlate across hops.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        reset_log_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            player_header=request.headers.get(PLAYER_ID_HEADER),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", error=str(e), duration_ms=_elapsed_ms(started))
            raise

        duration_ms = _elapsed_ms(started)
        log = logger.debug if request.url.path in QUIET_PATHS else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
