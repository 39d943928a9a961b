"""In-process, dimension-aware metrics with periodic reporting and ASGI request instrumentation."""

__version__ = "0.1.0"
