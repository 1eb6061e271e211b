"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from app.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs:
    - Request method, path and client
    - Response status code and duration
    - Request body at DEBUG level (for POST/PUT/PATCH requests, excluding
      endpoints that carry access codes or contact details)
    - Candidate identifier preview (from auth header if present)
    """

    # Session start bodies carry access codes and contact emails
    SKIP_BODY_LOGGING_SUFFIXES = ("/sessions",)

    def __init__(self, app, log_request_body: bool = True):
        """
        Initialize request logging middleware.

        Args:
            app: FastAPI application
            log_request_body: Whether to log request bodies (default: True)
        """
        super().__init__(app)
        self.log_request_body = log_request_body

    def _should_log_body(self, method: str, path: str) -> bool:
        return (
            self.log_request_body
            and method in ("POST", "PUT", "PATCH")
            and not path.rstrip("/").endswith(self.SKIP_BODY_LOGGING_SUFFIXES)
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint in chain

        Returns:
            Response from the endpoint
        """
        # Generate or extract request ID for correlation
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)

        start_time = time.time()

        # Extract candidate identifier from Authorization header if present
        candidate_identifier = "anonymous"
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            # Only a short preview of the token, never the full token
            candidate_identifier = f"token:{auth_header[7:17]}..."

        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"

        logger.info(
            "Incoming request",
            extra={
                "method": method,
                "path": path,
                "client_host": client_host,
                "candidate": candidate_identifier,
            },
        )

        if self._should_log_body(method, path) and logger.isEnabledFor(logging.DEBUG):
            body = await request.body()
            if body:
                logger.debug(
                    f"Request body: {body[:1000].decode('utf-8', errors='replace')}",
                    extra={"method": method, "path": path},
                )

        response = await call_next(request)

        # Calculate duration in milliseconds
        duration_ms = round((time.time() - start_time) * 1000, 2)
        status_code = response.status_code

        # Add request_id header to response for client-side correlation
        response.headers["X-Request-ID"] = request_id

        extra_fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_host": client_host,
            "candidate": candidate_identifier,
        }

        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        else:
            logger.info("Request completed", extra=extra_fields)

        return response
