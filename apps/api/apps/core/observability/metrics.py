"""
Prometheus metrics for clinic operations.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics. Instantiated once at
    import time (prometheus_client refuses duplicate registrations).
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        # ===================================================================
        # Orchestration
        # ===================================================================
        self.actions_total = self._create_counter(
            'clinic_actions_total',
            'Orchestration actions by outcome',
            ['action', 'result']
        )

        # ===================================================================
        # Appointments
        # ===================================================================
        self.appointment_transition_total = self._create_counter(
            'appointment_transition_total',
            'Appointment status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.appointment_booking_total = self._create_counter(
            'appointment_booking_total',
            'Booking and rescheduling attempts',
            ['operation', 'result']  # result: success|slot_unavailable
        )

        # ===================================================================
        # Numbering
        # ===================================================================
        self.numbering_retries_total = self._create_counter(
            'numbering_retries_total',
            'Transactions retried after lock contention',
            ['operation']
        )

        self.numbering_conflicts_total = self._create_counter(
            'numbering_conflicts_total',
            'Transactions that failed after the contention retry',
            ['operation']
        )

        # ===================================================================
        # Payments
        # ===================================================================
        self.payments_total = self._create_counter(
            'payments_total',
            'Payments by operation',
            ['operation', 'result']  # operation: create|void
        )

        self.payment_duration_seconds = self._create_histogram(
            'payment_create_duration_seconds',
            'Duration of the payment creation transaction',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
        )

        # ===================================================================
        # Inventory
        # ===================================================================
        self.stock_moves_total = self._create_counter(
            'stock_moves_total',
            'Stock movements',
            ['move_type', 'result']
        )

        self.inventory_operations_total = self._create_counter(
            'inventory_operations_total',
            'Purchases, sales, returns and adjustments',
            ['entity', 'operation', 'result']
        )

        # ===================================================================
        # Cash
        # ===================================================================
        self.cash_closings_total = self._create_counter(
            'cash_closings_total',
            'Cash closing operations',
            ['modulo', 'operation', 'result']  # operation: close|reopen
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.payment_duration_seconds)
            def create_payment(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
