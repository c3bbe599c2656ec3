#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

This module provides metrics collection for the gateway with:
- Task queue outcomes, depth and backoff delays
- Credential refreshes and rate-limit cooldowns
- Cache hit/miss rates per tier
- Reconciliation outcomes

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Efficient storage and aggregation
- Histogram buckets for backoff percentiles
"""


from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from feedgate.core.config.settings import get_settings
from feedgate.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

# Task queue metrics
QUEUE_TASKS = Counter(
    'feedgate_queue_tasks_total',
    'Task queue outcomes',
    ['outcome']  # completed, retried, dead_lettered
)

QUEUE_DEPTH = Gauge(
    'feedgate_queue_depth',
    'Current task queue depth'
)

QUEUE_BACKOFF = Histogram(
    'feedgate_queue_backoff_seconds',
    'Backoff delay applied after a task failure',
    buckets=(1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 64.0, 256.0, 1024.0, 3600.0)
)

# Authentication metrics
CREDENTIAL_REFRESHES = Counter(
    'feedgate_credential_refreshes_total',
    'Credential refresh attempts',
    ['status']  # success, failure
)

RATE_LIMIT_COOLDOWNS = Counter(
    'feedgate_rate_limit_cooldowns_total',
    'Rate-limit cooldowns started'
)

# Cache metrics
CACHE_HITS = Counter(
    'feedgate_cache_hits_total',
    'Total cache hits',
    ['tier']  # l1 or l2
)

CACHE_MISSES = Counter(
    'feedgate_cache_misses_total',
    'Total cache misses',
    ['tier']
)

REMOTE_FETCHES = Counter(
    'feedgate_remote_fetches_total',
    'Objects fetched from the remote store on a cache miss'
)

# Reconciliation metrics
RECONCILIATION_OBJECTS = Counter(
    'feedgate_reconciliation_objects_total',
    'Reconciled objects by outcome',
    ['outcome']  # inserted, skipped
)

# Error metrics
ERRORS = Counter(
    'feedgate_errors_total',
    'Total errors by type',
    ['error_type', 'stage']
)

# App info
APP_INFO = Info(
    'feedgate_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    STAGE-M: Metrics collection

    Usage:
        metrics = get_metrics_collector()

        metrics.record_queue_task("completed")
        metrics.record_cache_hit("l1")

        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Queue Metrics
    # =========================================================================

    def record_queue_task(self, outcome: str) -> None:
        """Record a task outcome."""
        QUEUE_TASKS.labels(outcome=outcome).inc()

    def set_queue_depth(self, depth: int) -> None:
        QUEUE_DEPTH.set(depth)

    def record_queue_backoff(self, delay_seconds: float) -> None:
        QUEUE_BACKOFF.observe(delay_seconds)

    # =========================================================================
    # Authentication Metrics
    # =========================================================================

    def record_credential_refresh(self, status: str) -> None:
        CREDENTIAL_REFRESHES.labels(status=status).inc()

    def record_rate_limit_cooldown(self) -> None:
        RATE_LIMIT_COOLDOWNS.inc()

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, tier: str) -> None:
        """Record cache hit."""
        CACHE_HITS.labels(tier=tier).inc()

    def record_cache_miss(self, tier: str) -> None:
        """Record cache miss."""
        CACHE_MISSES.labels(tier=tier).inc()

    def record_remote_fetch(self) -> None:
        REMOTE_FETCHES.inc()

    # =========================================================================
    # Reconciliation Metrics
    # =========================================================================

    def record_reconciliation(self, outcome: str, count: int = 1) -> None:
        if count:
            RECONCILIATION_OBJECTS.labels(outcome=outcome).inc(count)

    # =========================================================================
    # Error Metrics
    # =========================================================================

    def record_error(self, error_type: str, stage: str) -> None:
        """Record error."""
        ERRORS.labels(error_type=error_type, stage=stage).inc()

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
