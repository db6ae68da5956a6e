"""
Sequential benchmark runner: PUT, GET, LIST, LIST versions and DELETE phases.
"""

import logging
from typing import List, Optional

from algorithms.sequential import SequentialBenchmark
from common.storage_factory import create_storage_system
from configuration import BenchmarkConfig, DEFAULT_OUTPUT_DIR
from persistence.metrics_aggregator import MetricsAggregator
from persistence.parquet import ParquetPersistence
from persistence.record import PhaseResult

logger = logging.getLogger(__name__)


class BenchmarkRunner:
    """Wraps storage setup, the sequential benchmark and result saving."""

    def __init__(self, config: BenchmarkConfig, output_dir: Optional[str] = DEFAULT_OUTPUT_DIR):
        self.config = config.validate()
        self.storage_system = create_storage_system(config)
        self.aggregator = MetricsAggregator()
        self.persistence = ParquetPersistence(output_dir) if output_dir else None

        logger.info(
            f"Initialized benchmark runner: {config.endpoint}/{config.bucket}, "
            f"{config.threads} threads"
        )

    async def run_benchmark(self) -> List[PhaseResult]:
        """Execute the benchmark and save its results."""
        logger.info("=== Sequential Benchmark ===")
        async with self.storage_system:
            benchmark = SequentialBenchmark(
                self.storage_system,
                self.config,
                aggregator=self.aggregator,
                persistence=self.persistence,
            )
            results = await benchmark.execute()

        if self.persistence is not None:
            parquet_file = self.persistence.save_to_file("benchmark")
            if parquet_file:
                logger.info(f"Detailed results saved to: {parquet_file}")
        return results
