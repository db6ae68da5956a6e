"""
Backup-pattern runner: staggered PUT/GET/LIST/DELETE lanes over seeded keys.
"""

import logging
from typing import List, Optional

from algorithms.staggered import StaggeredBenchmark
from common.storage_factory import create_storage_system
from configuration import BenchmarkConfig, DEFAULT_OUTPUT_DIR, MIN_PATTERN_DURATION_SECONDS
from persistence.metrics_aggregator import MetricsAggregator
from persistence.parquet import ParquetPersistence
from persistence.prom import SimplePrometheusExporter
from persistence.record import PhaseResult

logger = logging.getLogger(__name__)


class PatternRunner:
    """Wraps storage setup, the staggered benchmark and result saving."""

    def __init__(self, config: BenchmarkConfig, output_dir: Optional[str] = DEFAULT_OUTPUT_DIR,
                 metrics_port: int = 0):
        if config.duration_seconds < MIN_PATTERN_DURATION_SECONDS:
            raise ValueError(
                f"duration must be >= {MIN_PATTERN_DURATION_SECONDS}s, got {config.duration_seconds}"
            )
        self.config = config.validate()
        self.storage_system = create_storage_system(config)
        self.aggregator = MetricsAggregator()
        self.persistence = ParquetPersistence(output_dir) if output_dir else None
        self.exporter = SimplePrometheusExporter(metrics_port) if metrics_port else None

        logger.info(
            f"Initialized pattern runner: {config.endpoint}/{config.bucket}, "
            f"{config.threads} lanes, total run {config.total_duration}s"
        )

    async def run_pattern(self) -> List[PhaseResult]:
        """Execute the staggered benchmark and save its results."""
        logger.info("=== Backup Pattern Benchmark ===")
        if self.exporter is not None:
            self.exporter.start_server()

        async with self.storage_system:
            benchmark = StaggeredBenchmark(
                self.storage_system,
                self.config,
                aggregator=self.aggregator,
                persistence=self.persistence,
                exporter=self.exporter,
            )
            results = await benchmark.execute()

        if self.persistence is not None:
            parquet_file = self.persistence.save_to_file("pattern")
            if parquet_file:
                logger.info(f"Detailed results saved to: {parquet_file}")
        return results
