"""Prometheus metrics definitions for the harvester.

Defines counters and histograms for monitoring:
- Listing and detail page fetches
- Proxy retries on transient blocks
- Citation metrics batches
- Export volume

Usage:
    from periodicos.observability.metrics import PAGES_FETCHED

    PAGES_FETCHED.labels(kind="listing", status="success").inc()
"""

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
)

# Custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

PAGES_FETCHED = Counter(
    name="periodicos_pages_fetched_total",
    documentation="Total portal page fetches",
    labelnames=["kind", "status"],  # listing/detail/preview, success/failed
    registry=REGISTRY,
)

FETCH_RETRIES = Counter(
    name="periodicos_fetch_retries_total",
    documentation="Total proxy fetch retries",
    labelnames=["reason"],  # transient_block, network
    registry=REGISTRY,
)

METRICS_BATCHES = Counter(
    name="periodicos_metrics_batches_total",
    documentation="Total citation metrics batch requests",
    labelnames=["status"],  # success, failed
    registry=REGISTRY,
)

QUALIS_LOOKUPS = Counter(
    name="periodicos_qualis_lookups_total",
    documentation="Total Qualis lookups by ISSN",
    labelnames=["result"],  # hit, miss, invalid
    registry=REGISTRY,
)

ARTICLES_EXPORTED = Counter(
    name="periodicos_articles_exported_total",
    documentation="Total articles written to export files",
    labelnames=["format"],  # ris, bibtex
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

FETCH_DURATION = Histogram(
    name="periodicos_fetch_duration_seconds",
    documentation="Page fetch duration in seconds, including retries",
    labelnames=["fetcher"],  # direct, proxy
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text exposition format."""
    return generate_latest(REGISTRY)
