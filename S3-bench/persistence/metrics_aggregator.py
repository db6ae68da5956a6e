"""
Metrics aggregator turning raw phase counters into rates and report lines.
"""

import logging
from typing import Any, Dict, List, Optional

from common.metrics_utils import (
    calculate_rate,
    calculate_requests_per_second,
    calculate_throughput_bytes_per_second,
    format_byte_size,
)
from common.run_context import PUT, GET, LIST, LISTVER, DELETE, OPERATIONS
from persistence.record import PhaseResult

logger = logging.getLogger(__name__)

LISTING_LABELS = {LIST: "LIST2", LISTVER: "LISTver"}


def compute_rates(result: PhaseResult) -> Dict[str, float]:
    """Rates of one phase; every rate is 0.0 when no time elapsed.

    Args:
        result: Finished phase

    Returns:
        Dictionary with elapsed seconds, bytes/sec, ops/sec and rows/sec
    """
    elapsed = result.elapsed_seconds
    return {
        'elapsed_seconds': elapsed,
        'bytes_per_sec': calculate_throughput_bytes_per_second(
            result.succeeded, result.object_size, elapsed
        ),
        'ops_per_sec': calculate_requests_per_second(result.succeeded, elapsed),
        'rows_per_sec': calculate_rate(result.rows, elapsed),
    }


class MetricsAggregator:
    """Collects phase results and formats them for the report."""

    def __init__(self):
        self.results: List[PhaseResult] = []

    def record_phase(self, result: PhaseResult) -> Dict[str, Any]:
        """Store a finished phase and return its statistics."""
        self.results.append(result)
        stats = self.get_phase_stats(result)
        logger.debug(f"Recorded {result!r}")
        return stats

    def get_phase_stats(self, result: PhaseResult) -> Dict[str, Any]:
        stats = result.to_dict()
        stats.update(compute_rates(result))
        return stats

    def format_phase(self, result: PhaseResult) -> str:
        """One report line in the sequential benchmark's format."""
        rates = compute_rates(result)
        elapsed = rates['elapsed_seconds']
        line = None
        if result.operation in (PUT, GET):
            line = (
                f"Loop {result.loop}: {result.operation} time {elapsed:.1f} secs, "
                f"objects = {result.succeeded}, "
                f"speed = {format_byte_size(rates['bytes_per_sec'])}B/sec, "
                f"{rates['ops_per_sec']:.1f} operations/sec. Slowdowns = {result.throttled}"
            )
        elif result.operation in LISTING_LABELS:
            line = (
                f"Loop {result.loop}: {LISTING_LABELS[result.operation]} time {elapsed:.1f} secs, "
                f"ops = {result.succeeded}, speed = {rates['rows_per_sec']:.1f} rows/sec, "
                f"{rates['ops_per_sec']:.1f} operations/sec. Slowdowns = {result.throttled}"
            )
        elif result.operation == DELETE:
            line = (
                f"Loop {result.loop}: DELETE time {elapsed:.1f} secs, "
                f"{rates['ops_per_sec']:.1f} deletes/sec. Slowdowns = {result.throttled}"
            )
        else:
            raise ValueError(f"Unknown operation: {result.operation}")
        if result.soft_errors:
            line += f", Errors = {result.soft_errors}"
        return line

    def format_summary(self, results: Optional[List[PhaseResult]] = None) -> str:
        """Compact per-operation table used by the staggered benchmark."""
        results = self.results if results is None else results
        lines = []
        for operation in OPERATIONS:
            for result in (r for r in results if r.operation == operation):
                rates = compute_rates(result)
                line = (
                    f"{operation:<7} {result.succeeded:5d} "
                    f"({rates['ops_per_sec']:4.1f}/s, {result.throttled} throttled, "
                    f"{result.soft_errors} ERR"
                )
                if operation in LISTING_LABELS:
                    line += f", {result.rows} rows, {rates['rows_per_sec']:.1f} rows/s"
                lines.append(line + ")")
        return "\n".join(lines)
