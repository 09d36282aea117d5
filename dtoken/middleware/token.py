"""
Stamp every request with a dtoken.
"""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from dtoken.config import settings
from dtoken.context import build_token

logger = logging.getLogger(__name__)


class DtokenMiddleware(BaseHTTPMiddleware):
    """
    Build a token from the request context, expose it on request.state and
    in the response headers, and log request start/finish with it.
    """

    async def dispatch(self, request: Request, call_next):
        issued = build_token(request, policy="lenient", source="middleware")
        request.state.dtoken = issued

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"dtoken": issued.token, "path": request.url.path},
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request completed: {request.method} {request.url.path} status={response.status_code}",
            extra={
                "dtoken": issued.token,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        response.headers[settings.TOKEN_HEADER] = issued.token

        return response
