"""
Request logging with trace correlation.

The trace id and request path are bound to structlog's context variables for the duration of
the request, so every log line emitted by the lifecycle service carries them too.
"""
import time

import structlog
from fastapi import Request
from opentelemetry import trace

logger = structlog.get_logger(__name__)


def current_trace_id() -> str:
    context = trace.get_current_span().get_span_context()
    return format(context.trace_id, "032x") if context.is_valid else ""


async def logging_middleware(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        trace_id=current_trace_id(),
        http_method=request.method,
        http_path=request.url.path,
    )
    started = time.perf_counter()
    logger.info("Request received", query=str(request.query_params) or None)

    try:
        response = await call_next(request)
        elapsed = round(time.perf_counter() - started, 3)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("Request finished", status_code=response.status_code, latency_seconds=elapsed)
        return response
    finally:
        structlog.contextvars.clear_contextvars()
