"""ASGI middleware timing each HTTP request into a ``requests`` Timer.

The ``uri`` dimension is always the route template that matched
(``/users/{user_id}``), never the concrete path, so the number of metrics
stays bounded however many distinct ids clients send.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable

from starlette.middleware import Middleware
from starlette.routing import Match, Mount
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from reqmetrics.lib.logger import get_logger
from reqmetrics.lib.metrics import Timer
from reqmetrics.registry.dimensions import Dimensions
from reqmetrics.registry.self_reporting import SelfReportingMetricsRegistry
from reqmetrics.registry.store import DimensionAwareMetricsRegistry

logger = get_logger(__name__)

DEFAULT_METRIC_NAME = "requests"
UNMATCHED_ROUTE = "_unmatched"

AnyRegistry = SelfReportingMetricsRegistry | DimensionAwareMetricsRegistry


def on_request_start() -> float:
    """Return the start mark to hand back to :func:`on_request_end`."""

    return time.perf_counter()


def on_request_end(
    registry: AnyRegistry,
    start: float,
    method: str,
    status_code: int,
    route_template: str,
    *,
    report_interval_seconds: float | None = None,
    metric_name: str = DEFAULT_METRIC_NAME,
) -> None:
    """Record one completed request for servers that have no middleware chain."""

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    dimensions = Dimensions(method=method.upper(), statusCode=str(status_code), uri=route_template)
    _request_timer(registry, metric_name, dimensions, report_interval_seconds).record(elapsed_ms)


def _request_timer(
    registry: AnyRegistry,
    name: str,
    dimensions: Dimensions,
    interval_seconds: float | None,
) -> Timer:
    if isinstance(registry, SelfReportingMetricsRegistry):
        return registry.get_or_create_timer(name, dimensions, interval_seconds)
    wrapper, _ = registry.get_or_create(name, dimensions, Timer)
    if not isinstance(wrapper.metric, Timer):
        raise TypeError(f"Metric '{name}' is a {wrapper.metric.kind}, not a timer")
    return wrapper.metric


def resolve_route_template(scope: Scope, origin: Scope | None = None) -> str:
    """Return the path template of the route that handled ``scope``.

    ``origin`` is a copy of the scope taken before routing. Routing updates the
    scope dict in place, so a request that crossed a ``Mount`` ends up with the
    sub-application in ``scope["app"]`` and a grown ``root_path``. Such requests
    are matched again from the outer application to keep the mount prefix
    (``/v1/users/{user_id}``). FastAPI leaves the matched route in
    ``scope["route"]``; plain Starlette apps are always matched again.
    """

    if origin is None:
        origin = {**scope, "root_path": scope.get("app_root_path", scope.get("root_path", ""))}
    crossed_mount = scope.get("root_path", "") != origin.get("root_path", "")

    route = scope.get("route")
    path = getattr(route, "path", None)
    if isinstance(path, str) and not crossed_mount:
        return path

    routes = getattr(origin.get("app"), "routes", None)
    if routes is None:
        return UNMATCHED_ROUTE
    base_scope = {**scope, "app": origin.get("app"), "root_path": origin.get("root_path", ""), "path": origin["path"]}
    return _match_routes(routes, base_scope, prefix="") or UNMATCHED_ROUTE


def _match_routes(routes: Iterable[Any], scope: Scope, prefix: str) -> str | None:
    for route in routes:
        match, child_scope = route.matches(scope)
        if match != Match.FULL:
            continue
        if isinstance(route, Mount):
            nested = _match_routes(route.routes, {**scope, **child_scope}, prefix + route.path)
            return nested if nested is not None else prefix + route.path
        return prefix + route.path
    return None


class ResponseCompletion:
    """Watches outgoing ASGI messages and fires ``on_complete`` once the body is fully sent."""

    def __init__(self, on_complete: Callable[[int], None]) -> None:
        self._on_complete = on_complete
        self.status_code: int | None = None
        self.completed = False

    def observe(self, message: Message) -> None:
        if self.completed:
            return
        message_type = message["type"]
        if message_type == "http.response.start":
            self.status_code = int(message["status"])
        elif message_type == "http.response.body" and not message.get("more_body", False):
            if self.status_code is None:
                return
            self.completed = True
            self._on_complete(self.status_code)


class RequestInstrumentationMiddleware:
    """Record exactly one Timer measurement per completed HTTP response.

    Requests whose response never completes (app error, client disconnect)
    are not recorded. WebSocket and lifespan scopes pass straight through.
    """

    def __init__(
        self,
        app: ASGIApp,
        registry: AnyRegistry,
        report_interval_seconds: float | None = None,
        metric_name: str = DEFAULT_METRIC_NAME,
    ) -> None:
        self.app = app
        self.registry = registry
        self.report_interval_seconds = report_interval_seconds
        self.metric_name = metric_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = on_request_start()
        origin = dict(scope)
        method = scope["method"]

        def record(status_code: int) -> None:
            on_request_end(
                self.registry,
                start,
                method,
                status_code,
                resolve_route_template(scope, origin),
                report_interval_seconds=self.report_interval_seconds,
                metric_name=self.metric_name,
            )

        completion = ResponseCompletion(record)

        async def send_wrapper(message: Message) -> None:
            await send(message)
            completion.observe(message)

        await self.app(scope, receive, send_wrapper)
        if not completion.completed:
            logger.debug(
                "metrics.request.incomplete",
                extra={"method": method, "status": completion.status_code},
            )


def create_instrumentation(
    registry: AnyRegistry,
    report_interval_seconds: float | None = None,
    *,
    metric_name: str = DEFAULT_METRIC_NAME,
) -> Middleware:
    """Build the middleware entry for ``FastAPI(middleware=[...])`` or ``Starlette(middleware=[...])``."""

    return Middleware(
        RequestInstrumentationMiddleware,
        registry=registry,
        report_interval_seconds=report_interval_seconds,
        metric_name=metric_name,
    )
