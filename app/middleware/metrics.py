"""
Prometheus metrics middleware for the Campaign Moderation Service
"""
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Trust analysis metrics
trust_analysis_total = Counter(
    'trust_analysis_total',
    'Number of trust assessments produced, by provenance',
    ['method']
)

ai_dependency_failures_total = Counter(
    'ai_dependency_failures_total',
    'Soft failures of the external AI completion service',
    ['reason']
)

# Cache metrics
cache_operations_total = Counter(
    'analysis_cache_operations_total',
    'Total number of analysis cache operations',
    ['operation', 'status']
)

# Lifecycle metrics
campaign_transitions_total = Counter(
    'campaign_transitions_total',
    'Campaign, edit and update state transitions',
    ['transition']
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()

        response = await call_next(request)

        # Route template keeps label cardinality bounded (/campaigns/{campaign_id})
        endpoint = request.url.path
        route = request.scope.get('route')
        if route is not None and hasattr(route, 'path'):
            endpoint = route.path

        duration = time.time() - start_time
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=str(response.status_code)
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
