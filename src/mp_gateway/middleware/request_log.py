"""Access log for the marketplace API.

One line per request, tagged with a request id that is echoed back in the
X-Request-ID header and in the response envelope:

    INFO [POST] /api/v1/offers/OF123/accept -> 200 (23ms) req_a1b2c3d4e5f6

A caller-supplied X-Request-ID is kept so a client can correlate its own
retries. Requests that blow up before a response exists are logged with the
traceback and re-raised.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.mp_common.response import new_request_id

logger = logging.getLogger("mp.request")

_MAX_INCOMING_ID = 64


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if 0 < len(incoming) <= _MAX_INCOMING_ID else new_request_id()
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception(
                "[%s] %s -> unhandled error %s", request.method, request.url.path, request_id
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s -> %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response
