"""
Simple Prometheus metrics exporter for the S3 benchmark.
"""

import logging
from typing import Dict

from prometheus_client import CollectorRegistry, Gauge, start_http_server

from common.run_context import RunContext

logger = logging.getLogger(__name__)

COUNTER_NAMES = ('attempted', 'succeeded', 'throttled', 'soft_errors', 'rows')


class SimplePrometheusExporter:
    """Publishes the live per-operation counters as gauges."""

    def __init__(self, port: int = 9100, registry: CollectorRegistry = None):
        self.port = port
        self.server_started = False
        self.registry = registry or CollectorRegistry()

        self.operations = Gauge(
            's3_benchmark_operations',
            'Cumulative operation counters',
            ['operation', 'counter'],
            registry=self.registry,
        )
        self.elapsed = Gauge(
            's3_benchmark_elapsed_seconds',
            'Seconds since the run started',
            registry=self.registry,
        )

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            start_http_server(self.port, registry=self.registry)
            self.server_started = True
            logger.info(f"Prometheus server started on port {self.port}")

    def update_counters(self, snapshot: Dict[str, Dict[str, int]]):
        """Set gauges from a ``RunContext.snapshot()``."""
        for operation, counters in snapshot.items():
            for name in COUNTER_NAMES:
                self.operations.labels(operation=operation, counter=name).set(counters[name])

    def update_from_context(self, context: RunContext, elapsed_seconds: float):
        self.update_counters(context.snapshot())
        self.elapsed.set(elapsed_seconds)
