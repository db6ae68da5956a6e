"""
Tests for phase results, rate calculation, report formatting and exporters.
"""

import os
import sys
import tempfile
import unittest

import pandas as pd
from prometheus_client import CollectorRegistry

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common import PhaseManager
from common.metrics_utils import calculate_rate, format_byte_size
from common.run_context import RunContext, PUT, GET, LIST, LISTVER, DELETE
from configuration import BYTES_PER_MB
from persistence.metrics_aggregator import MetricsAggregator, compute_rates
from persistence.parquet import ParquetPersistence
from persistence.prom import SimplePrometheusExporter
from persistence.record import PhaseResult


class TestRates(unittest.TestCase):

    def test_zero_elapsed_gives_zero_rates(self):
        result = PhaseResult(PUT, succeeded=10, rows=5, object_size=BYTES_PER_MB, start_ts=100.0, end_ts=100.0)
        self.assertEqual(compute_rates(result), {
            'elapsed_seconds': 0.0,
            'bytes_per_sec': 0.0,
            'ops_per_sec': 0.0,
            'rows_per_sec': 0.0,
        })

    def test_negative_elapsed_is_clamped(self):
        result = PhaseResult(GET, succeeded=10, start_ts=100.0, end_ts=90.0)
        self.assertEqual(result.elapsed_seconds, 0.0)
        self.assertEqual(compute_rates(result)['ops_per_sec'], 0.0)

    def test_rates(self):
        result = PhaseResult(PUT, succeeded=120, rows=30, object_size=BYTES_PER_MB, start_ts=0.0, end_ts=60.0)
        rates = compute_rates(result)
        self.assertAlmostEqual(rates['bytes_per_sec'], 2 * BYTES_PER_MB)
        self.assertAlmostEqual(rates['ops_per_sec'], 2.0)
        self.assertAlmostEqual(rates['rows_per_sec'], 0.5)

    def test_calculate_rate_infinite_duration(self):
        self.assertEqual(calculate_rate(10, float("inf")), 0.0)

    def test_format_byte_size(self):
        self.assertEqual(format_byte_size(0), "0B")
        self.assertEqual(format_byte_size(512), "512B")
        self.assertEqual(format_byte_size(1536), "1.5K")
        self.assertEqual(format_byte_size(BYTES_PER_MB), "1M")


class TestMetricsAggregator(unittest.TestCase):

    def test_put_line(self):
        aggregator = MetricsAggregator()
        result = PhaseResult(PUT, loop=1, succeeded=60, throttled=3, object_size=BYTES_PER_MB,
                             start_ts=0.0, end_ts=60.0)
        self.assertEqual(
            aggregator.format_phase(result),
            "Loop 1: PUT time 60.0 secs, objects = 60, speed = 1MB/sec, "
            "1.0 operations/sec. Slowdowns = 3",
        )

    def test_list_lines(self):
        aggregator = MetricsAggregator()
        v2 = PhaseResult(LIST, loop=2, succeeded=10, rows=100, start_ts=0.0, end_ts=10.0)
        versions = PhaseResult(LISTVER, loop=2, succeeded=10, rows=50, start_ts=0.0, end_ts=10.0)
        self.assertEqual(
            aggregator.format_phase(v2),
            "Loop 2: LIST2 time 10.0 secs, ops = 10, speed = 10.0 rows/sec, "
            "1.0 operations/sec. Slowdowns = 0",
        )
        self.assertTrue(aggregator.format_phase(versions).startswith("Loop 2: LISTver time 10.0 secs"))

    def test_delete_line_reports_errors(self):
        aggregator = MetricsAggregator()
        result = PhaseResult(DELETE, succeeded=20, soft_errors=2, start_ts=0.0, end_ts=4.0)
        self.assertEqual(
            aggregator.format_phase(result),
            "Loop 1: DELETE time 4.0 secs, 5.0 deletes/sec. Slowdowns = 0, Errors = 2",
        )

    def test_unknown_operation(self):
        with self.assertRaises(ValueError):
            MetricsAggregator().format_phase(PhaseResult("HEAD", start_ts=0.0, end_ts=1.0))

    def test_record_and_query(self):
        aggregator = MetricsAggregator()
        aggregator.record_phase(PhaseResult(PUT, loop=1, succeeded=1, start_ts=0.0, end_ts=1.0))
        aggregator.record_phase(PhaseResult(PUT, loop=2, succeeded=2, start_ts=0.0, end_ts=1.0))
        aggregator.record_phase(PhaseResult(GET, loop=1, succeeded=3, start_ts=0.0, end_ts=1.0))
        self.assertEqual([r.loop for r in aggregator.results], [1, 2, 1])
        stats = aggregator.get_phase_stats(aggregator.results[2])
        self.assertEqual(stats["ops_per_sec"], 3.0)
        self.assertEqual(stats["operation"], GET)
        self.assertEqual(len(aggregator.format_summary().splitlines()), 3)

    def test_summary_lists_operations_in_order(self):
        aggregator = MetricsAggregator()
        results = [
            PhaseResult(DELETE, succeeded=1, start_ts=0.0, end_ts=1.0),
            PhaseResult(PUT, succeeded=4, start_ts=0.0, end_ts=2.0),
            PhaseResult(LIST, succeeded=2, rows=7, start_ts=0.0, end_ts=1.0),
        ]
        lines = aggregator.format_summary(results).splitlines()
        self.assertEqual([line.split()[0] for line in lines], [PUT, LIST, DELETE])
        self.assertIn("7 rows", lines[1])


class TestPhaseManager(unittest.TestCase):

    def test_phase_result_from_counters(self):
        context = RunContext()
        manager = PhaseManager(context, object_size=1024, threads=4)
        deadline = manager.begin_phase(GET, loop=3, duration_seconds=10)
        self.assertTrue(manager.is_phase_active())
        self.assertAlmostEqual(deadline, manager.phase_start_ts + 10)

        context[GET].attempted = 5
        context[GET].succeeded = 4
        context[GET].soft_errors = 1
        result = manager.finish_phase(start_ts=1.0, end_ts=3.0)

        self.assertEqual(result.operation, GET)
        self.assertEqual(result.loop, 3)
        self.assertEqual(result.threads, 4)
        self.assertEqual(result.object_size, 1024)
        self.assertEqual(result.succeeded, 4)
        self.assertEqual(result.elapsed_seconds, 2.0)
        self.assertFalse(manager.is_phase_active())

    def test_finish_without_phase(self):
        with self.assertRaises(RuntimeError):
            PhaseManager(RunContext()).finish_phase()


class TestPersistence(unittest.TestCase):

    def test_parquet_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            persistence = ParquetPersistence(tmpdir)
            self.assertIsNone(persistence.save_to_file())

            persistence.store_result(PhaseResult(PUT, succeeded=10, object_size=100, start_ts=0.0, end_ts=5.0))
            persistence.store_result(PhaseResult(LIST, succeeded=3, rows=9, start_ts=0.0, end_ts=3.0))
            path = persistence.save_to_file("unit")

            self.assertTrue(os.path.exists(path))
            df = pd.read_parquet(path)
            self.assertEqual(list(df['operation']), [PUT, LIST])
            self.assertAlmostEqual(df['bytes_per_sec'].iloc[0], 200.0)
            self.assertAlmostEqual(df['rows_per_sec'].iloc[1], 3.0)

    def test_prometheus_gauges(self):
        registry = CollectorRegistry()
        exporter = SimplePrometheusExporter(port=0, registry=registry)
        context = RunContext()
        context[PUT].succeeded = 12
        context[LIST].rows = 40

        exporter.update_from_context(context, elapsed_seconds=2.5)

        self.assertEqual(registry.get_sample_value(
            's3_benchmark_operations', {'operation': PUT, 'counter': 'succeeded'}), 12.0)
        self.assertEqual(registry.get_sample_value(
            's3_benchmark_operations', {'operation': LIST, 'counter': 'rows'}), 40.0)
        self.assertEqual(registry.get_sample_value('s3_benchmark_elapsed_seconds'), 2.5)


if __name__ == '__main__':
    unittest.main()
