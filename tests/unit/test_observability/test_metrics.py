"""Tests for Prometheus metrics definitions."""

from periodicos.observability.metrics import (
    ARTICLES_EXPORTED,
    FETCH_DURATION,
    FETCH_RETRIES,
    METRICS_BATCHES,
    PAGES_FETCHED,
    QUALIS_LOOKUPS,
    REGISTRY,
    get_metrics_text,
)


class TestCounterMetrics:
    def test_pages_fetched_counter(self):
        initial = PAGES_FETCHED.labels(kind="listing", status="success")._value.get()

        PAGES_FETCHED.labels(kind="listing", status="success").inc()

        assert (
            PAGES_FETCHED.labels(kind="listing", status="success")._value.get()
            == initial + 1
        )

    def test_labels_are_independent(self):
        failed = PAGES_FETCHED.labels(kind="detail", status="failed")._value.get()

        PAGES_FETCHED.labels(kind="detail", status="success").inc()

        assert PAGES_FETCHED.labels(kind="detail", status="failed")._value.get() == (
            failed
        )

    def test_retry_and_batch_counters(self):
        retries = FETCH_RETRIES.labels(reason="transient_block")._value.get()
        batches = METRICS_BATCHES.labels(status="failed")._value.get()

        FETCH_RETRIES.labels(reason="transient_block").inc()
        METRICS_BATCHES.labels(status="failed").inc()

        assert FETCH_RETRIES.labels(reason="transient_block")._value.get() == (
            retries + 1
        )
        assert METRICS_BATCHES.labels(status="failed")._value.get() == batches + 1

    def test_export_counter_increments_by_count(self):
        initial = ARTICLES_EXPORTED.labels(format="ris")._value.get()

        ARTICLES_EXPORTED.labels(format="ris").inc(12)

        assert ARTICLES_EXPORTED.labels(format="ris")._value.get() == initial + 12


class TestHistogramMetrics:
    def test_fetch_duration_observe(self):
        FETCH_DURATION.labels(fetcher="proxy").observe(1.5)

        text = get_metrics_text().decode("utf-8")
        assert 'periodicos_fetch_duration_seconds_bucket{fetcher="proxy",le="2.0"}' in (
            text
        )


class TestRegistry:
    def test_metrics_text_lists_all_families(self):
        QUALIS_LOOKUPS.labels(result="hit").inc()

        text = get_metrics_text().decode("utf-8")

        for name in (
            "periodicos_pages_fetched_total",
            "periodicos_fetch_retries_total",
            "periodicos_metrics_batches_total",
            "periodicos_qualis_lookups_total",
            "periodicos_articles_exported_total",
            "periodicos_fetch_duration_seconds",
        ):
            assert name in text

    def test_private_registry(self):
        from prometheus_client import REGISTRY as DEFAULT_REGISTRY

        assert REGISTRY is not DEFAULT_REGISTRY
        assert DEFAULT_REGISTRY.get_sample_value(
            "periodicos_qualis_lookups_total", {"result": "hit"}
        ) is None
