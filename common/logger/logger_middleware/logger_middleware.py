# common/logger/logger_middleware/logger_middleware.py
"""
Request logging middleware for FastAPI.

Every request gets a correlation id (taken from `X-Request-ID` or generated),
bound into structlog's context vars so that every log line emitted while the
request is handled, and every error envelope, carries the same id.

Usage Example:
    app.add_middleware(
        RequestLoggingMiddleware,
        expose_performance_headers=True,
        slow_request_threshold_ms=500,
    )
"""

from typing import Callable, Awaitable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import structlog
import time
import uuid

from common.context_vars import request_timer_context_var, request_id_context_var
from .request_timer import RequestTimer
from ..logger import get_app_logger
from .middleware_types import (
    RequestMetadata,
    RequestDetails,
    RequestLogEntry,
    PerformanceBreakdown,
)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for structured request logging.

    One instance per app. The middleware holds configuration only; all
    per-request state lives in context vars and `request.state`.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        expose_performance_headers: Optional[bool] = False,
        log_details: bool = True,
        slow_request_threshold_ms: float = 1000.0,
        log_query_params: bool = True,
        log_client_info: bool = True,
        logger_name: Optional[str] = None,
    ):
        """
        Args:
            app: ASGI application
            expose_performance_headers: Add a `Server-Timing` header to responses
            log_details: Whether to log extended details (client IP, params, etc.)
            slow_request_threshold_ms: Requests slower than this log at WARNING
            log_query_params: Whether to include query parameters (may contain PII)
            log_client_info: Whether to log client IP and User-Agent
            logger_name: Custom logger name (defaults to module name)
        """
        super().__init__(app)
        self.log_details = log_details
        self.slow_request_threshold_ms = slow_request_threshold_ms
        self.log_query_params = log_query_params
        self.log_client_info = log_client_info
        self.expose_performance_headers = expose_performance_headers
        self.logger = get_app_logger(name=logger_name or __name__, track_timing=True)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        timer = RequestTimer()
        timer_token = request_timer_context_var.set(timer)

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        id_token = request_id_context_var.set(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        try:
            with timer.capture("app"):
                response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            perf_data = PerformanceBreakdown(
                total_ms=round(duration_ms, 2),
                app_logic_ms=round(timer.timings.get("app", 0), 2),
                db_ms=round(timer.timings.get("db", 0), 2),
                transaction_count=int(timer.timings.get("transaction_count", 0)),
            )
            request_timer_context_var.reset(timer_token)
            request_id_context_var.reset(id_token)

        response.headers[REQUEST_ID_HEADER] = request_id

        expose = self.expose_performance_headers or getattr(
            request.state, "expose_perf", False
        )
        if expose:
            response.headers["Server-Timing"] = (
                timer.format_server_timing() + f", total;dur={duration_ms:.2f}"
            )

        log_entry = self._build_log_entry(
            request=request,
            response=response,
            duration_ms=duration_ms,
            request_id=request_id,
            perf_data=perf_data,
        )
        self._log_request(log_entry)
        structlog.contextvars.unbind_contextvars("request_id")
        return response

    def _build_log_entry(
        self,
        request: Request,
        response: Response,
        duration_ms: float,
        request_id: str,
        perf_data: Optional[PerformanceBreakdown] = None,
    ) -> RequestLogEntry:
        metadata = RequestMetadata(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        details = None
        if self.log_details:
            details = RequestDetails(
                request_id=request_id,
                client_host=(
                    request.client.host
                    if self.log_client_info and request.client
                    else None
                ),
                user_agent=(
                    request.headers.get("user-agent") if self.log_client_info else None
                ),
                query_params=(
                    dict(request.query_params)
                    if self.log_query_params and request.query_params
                    else None
                ),
                path_params=request.path_params or None,
                content_length=int(response.headers.get("content-length", 0)) or None,
            )

        return RequestLogEntry(
            metadata=metadata,
            details=details,
            performance=perf_data,
            slow_threshold_ms=self.slow_request_threshold_ms,
        )

    def _log_request(self, log_entry: RequestLogEntry) -> None:
        """
        ERROR for 5xx, WARNING for slow requests or 4xx, INFO otherwise.
        """
        log_data = log_entry.model_dump(mode="json", exclude_none=True)

        if log_entry.is_error:
            self.logger.error("Request failed with server error", **log_data)
        elif log_entry.is_slow:
            self.logger.warning(
                f"Slow request detected ({log_entry.metadata.duration_ms}ms)",
                **log_data,
            )
        elif log_entry.metadata.status_code >= 400:
            self.logger.warning("Request failed with client error", **log_data)
        else:
            self.logger.info("Request completed", **log_data)


async def enable_perf_headers(request: Request) -> None:
    """
    Dependency to flag that this request should expose performance headers.
    Requires RequestLoggingMiddleware to be active.

    Usage:
        @router.get("/doctors/{id}/slots", dependencies=[Depends(enable_perf_headers)])
    """
    request.state.expose_perf = True


__all__ = [
    "RequestLoggingMiddleware",
    "enable_perf_headers",
    "REQUEST_ID_HEADER",
]
