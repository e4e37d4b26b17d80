"""HTTP request metrics middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

METRICS_PATH = "/metrics"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            # Label by route template (/api/v1/payouts/club/{club_id}) to bound cardinality
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or "unmatched"
            prometheus_metrics.record_http_request(
                method=request.method,
                endpoint=endpoint,
                duration=time.time() - start_time,
                status_code=status_code,
            )
