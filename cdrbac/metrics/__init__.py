"""
Metrics package for cdrbac (Prometheus).
"""

from .collector import MetricConfig, MetricsCollector

__all__ = [
    'MetricConfig',
    'MetricsCollector',
]
