"""
Observability Middleware and logging setup.

Adds correlation IDs and structured logging context to requests.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ledger_backend.app.core.config import settings
from ledger_backend.app.core.dependencies import get_client_address

logger = logging.getLogger("ledger")


def configure_logging() -> None:
    """Apply the configured level to the application logger tree."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.setLevel(settings.log_level.upper())


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # 1. Reuse the caller's correlation ID or mint one
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        # 2. Start timer
        start_time = time.perf_counter()

        # 3. Process request
        response = await call_next(request)

        # 4. Duration in ms
        process_time = (time.perf_counter() - start_time) * 1000

        # 5. Response headers
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{process_time:.2f}"

        # 6. Structured log line
        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(process_time, 2),
            "client": get_client_address(request)
        }

        # Log level based on status
        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=log_data)
        else:
            logger.info("Request served", extra=log_data)

        return response
