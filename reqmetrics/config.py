"""Runtime configuration loading via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from reqmetrics.reporting.reporters import HttpReporter, LoggingReporter, Reporter


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    report_interval_seconds: float = Field(default=10.0, gt=0.0, alias="METRICS_REPORT_INTERVAL_SECONDS")
    reporter: Literal["logging", "http"] = Field(default="logging", alias="METRICS_REPORTER")
    push_url: str | None = Field(default=None, alias="METRICS_PUSH_URL")
    push_timeout_seconds: float = Field(default=5.0, gt=0.0, alias="METRICS_PUSH_TIMEOUT_SECONDS")
    final_flush: bool = Field(default=False, alias="METRICS_FINAL_FLUSH")
    request_metric_name: str = Field(default="requests", min_length=1, alias="METRICS_REQUEST_METRIC_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def require_push_url(self) -> "Settings":
        """Reject an HTTP reporter without a destination."""

        if self.reporter == "http" and not self.push_url:
            raise ValueError("METRICS_PUSH_URL is required when METRICS_REPORTER=http")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()  # type: ignore[call-arg]


def build_reporter(settings: Settings) -> Reporter:
    """Instantiate the reporter selected by ``settings.reporter``."""

    if settings.reporter == "http":
        if not settings.push_url:
            raise ValueError("METRICS_PUSH_URL is required when METRICS_REPORTER=http")
        return HttpReporter(settings.push_url, timeout=settings.push_timeout_seconds)
    return LoggingReporter()
