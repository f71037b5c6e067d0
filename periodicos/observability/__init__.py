"""Observability module.

Provides:
- Correlation ID context management for search tracing
- Structured logging with context propagation
- Prometheus metrics for crawl monitoring

Usage:
    from periodicos.observability import configure_logging, correlation_id_context

    configure_logging(level="INFO")
    with correlation_id_context():
        ...
"""

from periodicos.observability.context import (
    set_correlation_id,
    get_correlation_id,
    clear_correlation_id,
    correlation_id_context,
)
from periodicos.observability.logging import (
    get_logger,
    configure_logging,
    add_correlation_id_processor,
    bind_context,
    clear_context,
)
from periodicos.observability.metrics import (
    REGISTRY,
    PAGES_FETCHED,
    FETCH_RETRIES,
    METRICS_BATCHES,
    QUALIS_LOOKUPS,
    ARTICLES_EXPORTED,
    FETCH_DURATION,
    get_metrics_text,
)

__all__ = [
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    "get_logger",
    "configure_logging",
    "add_correlation_id_processor",
    "bind_context",
    "clear_context",
    "REGISTRY",
    "PAGES_FETCHED",
    "FETCH_RETRIES",
    "METRICS_BATCHES",
    "QUALIS_LOOKUPS",
    "ARTICLES_EXPORTED",
    "FETCH_DURATION",
    "get_metrics_text",
]
