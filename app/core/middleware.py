import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.config import settings
from app.core.logging import new_correlation_id, request_id_var

logger = logging.getLogger(__name__)

class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind the incoming (or a fresh) request id to the logging context and echo it back."""
    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(settings.request_id_header)
        if incoming:
            request_id_var.set(incoming)
            req_id = incoming
        else:
            req_id = new_correlation_id()
        response = await call_next(request)
        response.headers[settings.request_id_header] = req_id
        return response

class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"duration_ms": round(elapsed_ms, 1)}
        )
        return response
