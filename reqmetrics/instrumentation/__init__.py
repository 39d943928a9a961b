"""HTTP request instrumentation for ASGI applications."""

from reqmetrics.instrumentation.middleware import (
    UNMATCHED_ROUTE,
    RequestInstrumentationMiddleware,
    create_instrumentation,
    on_request_end,
    on_request_start,
    resolve_route_template,
)

__all__ = [
    "UNMATCHED_ROUTE",
    "RequestInstrumentationMiddleware",
    "create_instrumentation",
    "on_request_end",
    "on_request_start",
    "resolve_route_template",
]
