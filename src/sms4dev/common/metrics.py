"""Prometheus metrics for SMS4Dev authentication."""

import os
import time

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    multiprocess,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

# === Counters ===

AUTH_DECISIONS_TOTAL = Counter(
    "sms4dev_auth_decisions_total",
    "Total authentication decisions",
    ["mode", "outcome", "code"],  # mode: static, hmac, insecure; outcome: allowed, denied
)

KEY_OPERATIONS_TOTAL = Counter(
    "sms4dev_key_operations_total",
    "Access key lifecycle operations",
    ["operation", "outcome"],  # operation: create, generate, delete, validate
)

HTTP_REQUESTS_TOTAL = Counter(
    "sms4dev_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

# === Histograms ===

HTTP_REQUEST_LATENCY = Histogram(
    "sms4dev_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


# === Helper Functions ===


def record_auth_decision(mode: str, allowed: bool, code: str | None) -> None:
    """Record an authentication decision."""
    AUTH_DECISIONS_TOTAL.labels(
        mode=mode,
        outcome="allowed" if allowed else "denied",
        code=code or "none",
    ).inc()


def record_key_operation(operation: str, outcome: str) -> None:
    """Record an access key lifecycle operation."""
    KEY_OPERATIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_http_request(
    method: str,
    endpoint: str,
    status: int,
    latency: float,
) -> None:
    """Record an HTTP request."""
    HTTP_REQUESTS_TOTAL.labels(
        method=method,
        endpoint=endpoint,
        status=str(status),
    ).inc()
    HTTP_REQUEST_LATENCY.labels(
        method=method,
        endpoint=endpoint,
    ).observe(latency)


# === HTTP Middleware ===


UNMATCHED_ENDPOINT = "unmatched"


def route_template(request: Request) -> str:
    """Path template of the route serving a request, or ``"unmatched"``."""
    app = request.scope.get("app")
    for route in getattr(app, "routes", ()):
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            return getattr(route, "path", UNMATCHED_ENDPOINT)
    return UNMATCHED_ENDPOINT


class MetricsMiddleware(BaseHTTPMiddleware):
    """HTTP request metrics middleware, labelled by route template."""

    def __init__(self, app: ASGIApp, exclude_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self._exclude_paths = set(exclude_paths or [])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._exclude_paths:
            return await call_next(request)

        endpoint = route_template(request)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            record_http_request(
                method=request.method,
                endpoint=endpoint,
                status=500,
                latency=duration,
            )
            raise

        duration = time.perf_counter() - start
        record_http_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            latency=duration,
        )
        return response


# === HTTP Endpoint ===


async def metrics_endpoint(_request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if multiproc_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)  # type: ignore[no-untyped-call]
        return Response(
            generate_latest(registry),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return Response(
        generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
