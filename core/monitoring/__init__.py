"""
Monitoring components for the trade ledger
"""

from .prometheus_metrics import TradingMetricsCollector

__all__ = ["TradingMetricsCollector"]
