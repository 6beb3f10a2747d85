"""
Prometheus metrics for the document service.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _setup_metrics(self):
        # ===================================================================
        # Error metrics
        # ===================================================================
        self.exceptions_total = Counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Storage tier metrics
        # ===================================================================
        self.document_tier_migrations_total = Counter(
            'document_tier_migrations_total',
            'Document payload moves between storage tiers',
            ['from_tier', 'to_tier', 'result']  # result: success|noop|resumed|repaired|failure
        )

        self.document_tier_migration_duration_seconds = Histogram(
            'document_tier_migration_duration_seconds',
            'Duration of a single copy-delete-persist tier move',
            ['to_tier'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
        )

        self.document_rehydrations_total = Counter(
            'document_rehydrations_total',
            'Read-path rehydrations',
            ['from_tier', 'result']
        )

        self.document_lock_contention_total = Counter(
            'document_lock_contention_total',
            'Migration lock acquisition attempts that found the lock held',
            ['caller']  # migration, rehydration, lifecycle, orphan_purge, delete
        )

        self.orphaned_objects_total = Counter(
            'orphaned_objects_total',
            'Source objects left behind after a failed delete',
            ['result']  # registered, purged, purge_failed
        )

        # ===================================================================
        # Lifecycle scheduler metrics
        # ===================================================================
        self.lifecycle_runs_total = Counter(
            'lifecycle_runs_total',
            'Storage lifecycle runs',
            ['result']  # success, failure, skipped
        )

        self.lifecycle_documents_total = Counter(
            'lifecycle_documents_total',
            'Documents visited by the storage lifecycle run',
            ['target_tier', 'result']  # result: migrated, skipped, failed
        )

        self.lifecycle_run_duration_seconds = Histogram(
            'lifecycle_run_duration_seconds',
            'Storage lifecycle run duration',
            buckets=[1, 5, 15, 30, 60, 300, 900, 1800]
        )

        # ===================================================================
        # Signing lifecycle metrics
        # ===================================================================
        self.document_transitions_total = Counter(
            'document_transitions_total',
            'Document status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.documents_created_total = Counter(
            'documents_created_total',
            'Documents created',
            ['result']
        )

        self.documents_deleted_total = Counter(
            'documents_deleted_total',
            'Document deletions',
            ['result']  # success, conflict, failure
        )

    def track_duration(self, histogram_metric, **labels):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.lifecycle_run_duration_seconds)
            def run_storage_lifecycle():
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    metric = histogram_metric.labels(**labels) if labels else histogram_metric
                    metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
