"""
Prometheus metrics for authorization decisions and audit health.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from prometheus_client import (
    Counter, Histogram, Gauge, CollectorRegistry, generate_latest
)


logger = logging.getLogger(__name__)


@dataclass
class MetricConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "cdrbac"


class MetricsCollector:
    """Collects decision, latency, audit and policy generation metrics."""

    def __init__(self, config: Optional[MetricConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            config: Metrics configuration
            registry: Registry to register on; a private one by default
        """
        self.config = config or MetricConfig()
        self.registry = registry or CollectorRegistry()

        ns = self.config.namespace

        self.decisions = Counter(
            f'{ns}_authorization_decisions_total',
            'Total number of authorization decisions',
            ['outcome', 'resource_type'],
            registry=self.registry
        )

        self.evaluation_latency = Histogram(
            f'{ns}_evaluation_duration_seconds',
            'Policy evaluation duration in seconds, audit write included',
            buckets=[0.0001, 0.0002, 0.0005, 0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1],
            registry=self.registry
        )

        self.audit_failures = Counter(
            f'{ns}_audit_failures_total',
            'Audit writes that failed and forced a deny',
            registry=self.registry
        )

        self.policy_generation = Gauge(
            f'{ns}_policy_generation',
            'Generation number of the active policy',
            registry=self.registry
        )

        logger.info("Metrics collector initialized")

    def record_decision(self, outcome: str, resource_type: str, duration: float) -> None:
        """Record one authorization decision."""
        if not self.config.enabled:
            return
        self.decisions.labels(outcome=outcome, resource_type=resource_type).inc()
        self.evaluation_latency.observe(duration)

    def record_audit_failure(self) -> None:
        if not self.config.enabled:
            return
        self.audit_failures.inc()

    def set_policy_generation(self, generation: int) -> None:
        if not self.config.enabled:
            return
        self.policy_generation.set(generation)

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)
