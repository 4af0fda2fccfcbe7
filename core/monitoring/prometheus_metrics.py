"""
Prometheus metrics for order processing and settlement
"""

from prometheus_client import Counter, Histogram, CollectorRegistry
from typing import Optional


class TradingMetricsCollector:
    """Ledger metrics exposed at /metrics"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        # Throughput metrics
        self.orders_processed = Counter(
            'ledger_orders_processed_total',
            'Total orders submitted, by final status',
            ['side', 'kind', 'status'],
            registry=self.registry
        )

        self.orders_cancelled = Counter(
            'ledger_orders_cancelled_total',
            'Total orders cancelled',
            registry=self.registry
        )

        self.settlement_orders = Counter(
            'ledger_settlement_orders_total',
            'Total cash settlement orders written',
            ['side'],
            registry=self.registry
        )

        # Latency metrics
        self.processing_latency = Histogram(
            'ledger_order_processing_seconds',
            'Ledger operation latency',
            ['operation'],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry
        )

    def record_order_processed(self, side: str, kind: str, status: str):
        """Record a submitted order with its final status"""
        self.orders_processed.labels(side=side, kind=kind, status=status).inc()

    def record_order_cancelled(self):
        """Record a successful cancellation"""
        self.orders_cancelled.inc()

    def record_settlement(self, side: str):
        """Record a settlement order"""
        self.settlement_orders.labels(side=side).inc()

    def record_processing_time(self, operation: str, duration_seconds: float):
        """Record latency of a ledger operation"""
        self.processing_latency.labels(operation=operation).observe(duration_seconds)
