"""
Parquet persistence for benchmark results.
"""

import os
import logging
from typing import List, Optional
from datetime import datetime

import pandas as pd

from persistence.metrics_aggregator import compute_rates
from persistence.record import PhaseResult

logger = logging.getLogger(__name__)


class ParquetPersistence:
    """Parquet file persistence for phase results.

    Results are kept in memory during the run and written once at the end,
    one row per phase with its counters and computed rates.

    Attributes:
        output_dir: Directory where Parquet files will be saved
        results: Phase results accumulated during the benchmark
    """

    def __init__(self, output_dir: str = "results"):
        self.output_dir: str = output_dir
        self.results: List[PhaseResult] = []

        os.makedirs(output_dir, exist_ok=True)

    def store_result(self, result: PhaseResult) -> None:
        self.results.append(result)

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for result in self.results:
            row = result.to_dict()
            row.update(compute_rates(result))
            rows.append(row)
        return pd.DataFrame(rows)

    def save_to_file(self, filename_prefix: str = "benchmark") -> Optional[str]:
        """Save all results to a Parquet file.

        Args:
            filename_prefix: Prefix for the generated filename (default: 'benchmark')

        Returns:
            Path to the saved file, or None if no results to save
        """
        if not self.results:
            return None

        logger.info(f"Saving {len(self.results)} phase results to file")
        df = self.to_dataframe()

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{filename_prefix}_{timestamp}.parquet"
        filepath = os.path.join(self.output_dir, filename)

        df.to_parquet(filepath, index=False)

        return filepath
