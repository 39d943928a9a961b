"""Reporter protocol plus logging and HTTP push implementations."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

import httpx

from reqmetrics.errors import ReporterError
from reqmetrics.lib.logger import get_logger
from reqmetrics.registry.schemas import MetricSnapshot

logger = get_logger(__name__)


@runtime_checkable
class Reporter(Protocol):
    """Receives the snapshots of one reporting tick and delivers them somewhere."""

    def report(self, snapshots: Sequence[MetricSnapshot]) -> None: ...


class LoggingReporter:
    """Emit one structured log line per snapshot."""

    def __init__(self, event: str = "metrics.snapshot") -> None:
        self.event = event

    def report(self, snapshots: Sequence[MetricSnapshot]) -> None:
        for snapshot in snapshots:
            # LogRecord reserves "name", so the snapshot goes under "metric"
            logger.info(self.event, extra={"metric": snapshot})


class HttpReporter:
    """POST each tick's snapshots as a JSON envelope to a collector endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def report(self, snapshots: Sequence[MetricSnapshot]) -> None:
        payload = {"ok": True, "data": [snapshot.json_payload() for snapshot in snapshots]}
        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = exc.response.text[:200]
            logger.warning(
                "metrics.push.http_error",
                extra={"url": self.url, "status": status, "detail": detail},
            )
            raise ReporterError(f"Metrics push failed ({status}): {detail}") from exc
        except httpx.HTTPError as exc:
            logger.warning("metrics.push.network_error", extra={"url": self.url})
            raise ReporterError("Metrics push failed (network)") from exc

        logger.debug("metrics.push.summary", extra={"url": self.url, "count": len(snapshots)})

    def close(self) -> None:
        self._client.close()
