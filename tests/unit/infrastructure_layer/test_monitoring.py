"""
Unit Tests for MetricsCollector

Tests that gateway activity is exported in Prometheus text format.
"""

import pytest
from prometheus_client import REGISTRY

from feedgate.core.exceptions import GivenUpError, ReconciliationError, TransientTransportError
from feedgate.core.resilience.task_queue import QueueConfig, TaskQueue
from feedgate.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)
from feedgate.reconciliation.engine import ReconciliationEngine
from tests.test_fixtures import FakeRecordStore, make_object


def _sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


@pytest.mark.unit
class TestMetricsCollector:
    """Test suite for MetricsCollector."""

    def test_singleton(self):
        """Test that get_metrics_collector returns one instance."""
        assert get_metrics_collector() is get_metrics_collector()

    def test_queue_metrics(self):
        """Test queue outcome counters and depth gauge."""
        metrics = MetricsCollector()
        before = _sample("feedgate_queue_tasks_total", {"outcome": "retried"})

        metrics.record_queue_task("retried")
        metrics.set_queue_depth(3)
        metrics.record_queue_backoff(4.0)

        assert _sample("feedgate_queue_tasks_total", {"outcome": "retried"}) == before + 1
        assert _sample("feedgate_queue_depth") == 3

    def test_cache_metrics_by_tier(self):
        """Test that cache hits are labelled by tier."""
        metrics = MetricsCollector()
        before = _sample("feedgate_cache_hits_total", {"tier": "l2"})

        metrics.record_cache_hit("l2")

        assert _sample("feedgate_cache_hits_total", {"tier": "l2"}) == before + 1

    def test_zero_reconciliation_count_not_recorded(self):
        """Test that empty outcomes leave the counter untouched."""
        metrics = MetricsCollector()
        before = _sample("feedgate_reconciliation_objects_total", {"outcome": "inserted"})

        metrics.record_reconciliation("inserted", 0)
        metrics.record_reconciliation("inserted", 3)

        assert _sample("feedgate_reconciliation_objects_total", {"outcome": "inserted"}) == before + 3

    def test_prometheus_export(self):
        """Test that the export contains gateway metrics."""
        metrics = MetricsCollector()
        metrics.record_rate_limit_cooldown()
        metrics.record_credential_refresh("success")

        output = metrics.get_prometheus_metrics().decode()

        assert "feedgate_rate_limit_cooldowns_total" in output
        assert "feedgate_credential_refreshes_total" in output
        assert metrics.get_content_type().startswith("text/plain")


class _DownRecordStore(FakeRecordStore):
    async def query_existing_keys(self, room_ids) -> set[str]:
        raise RuntimeError("database unavailable")


@pytest.mark.unit
class TestErrorMetrics:
    """Test suite for error counters recorded at failure sites."""

    def test_record_error(self):
        metrics = MetricsCollector()
        labels = {"error_type": "PermanentError", "stage": "session"}
        before = _sample("feedgate_errors_total", labels)

        metrics.record_error("PermanentError", "session")

        assert _sample("feedgate_errors_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_dead_letter_counts_error(self, recording_sleep, seeded_rng):
        """Test that a dead-lettered task is counted under the queue stage."""
        labels = {"error_type": "TransientTransportError", "stage": "queue"}
        before = _sample("feedgate_errors_total", labels)
        queue = TaskQueue(
            QueueConfig(max_attempts=1), sleep=recording_sleep, rng=seeded_rng, metrics=MetricsCollector()
        )

        async def always_fails():
            raise TransientTransportError("down")

        with pytest.raises(GivenUpError):
            await queue.enqueue(always_fails)

        assert _sample("feedgate_errors_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_record_store_failure_counts_error(self):
        """Test that a failing record store is counted under the reconcile stage."""
        labels = {"error_type": "RuntimeError", "stage": "reconcile"}
        before = _sample("feedgate_errors_total", labels)
        engine = ReconciliationEngine(_DownRecordStore(), "agent-1", metrics=MetricsCollector())

        with pytest.raises(ReconciliationError):
            await engine.reconcile([make_object("1")])

        assert _sample("feedgate_errors_total", labels) == before + 1
