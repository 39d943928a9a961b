"""FastAPI application factory wiring the self-reporting registry into a host app."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from reqmetrics import __version__
from reqmetrics.config import Settings, build_reporter, get_settings
from reqmetrics.instrumentation import create_instrumentation
from reqmetrics.lib.logger import configure_logging, get_logger
from reqmetrics.registry import SelfReportingMetricsRegistry
from reqmetrics.reporting import Reporter

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, *, reporter: Reporter | None = None) -> FastAPI:
    """Build an application whose requests are timed into a self-reporting registry.

    The registry is created here and handed to both the middleware and
    ``app.state``; it is shut down when the application's lifespan ends.
    """

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    active_reporter = reporter or build_reporter(settings)
    registry = SelfReportingMetricsRegistry(
        active_reporter,
        default_interval_seconds=settings.report_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "metrics.app.startup",
            extra={"interval_seconds": settings.report_interval_seconds, "reporter": settings.reporter},
        )
        try:
            yield
        finally:
            registry.shutdown(final_flush=settings.final_flush)
            close = getattr(active_reporter, "close", None)
            if callable(close):
                close()

    app = FastAPI(
        title="reqmetrics",
        version=__version__,
        lifespan=lifespan,
        middleware=[
            create_instrumentation(
                registry,
                settings.report_interval_seconds,
                metric_name=settings.request_metric_name,
            )
        ],
    )
    app.state.settings = settings
    app.state.metrics = registry

    @app.get("/health", tags=["system"], summary="Health check")
    async def health_check() -> JSONResponse:
        """Return liveness response for uptime monitoring."""
        payload = {"ok": True, "data": {"status": "healthy"}}
        return JSONResponse(content=payload)

    @app.get("/metrics", tags=["system"], summary="Metrics endpoint")
    async def metrics_endpoint(request: Request) -> JSONResponse:
        """Return every metric's current value without closing its reporting window."""
        metrics: SelfReportingMetricsRegistry = request.app.state.metrics
        snapshot = [item.json_payload() for item in metrics.snapshot()]
        return JSONResponse({"ok": True, "data": snapshot})

    return app
