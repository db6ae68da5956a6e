"""
Staggered backup-pattern benchmark.

Every lane owns a seeded key set under the backup prefix. Within a lane the
PUT stream starts at once, GET after one delta, LIST after two and DELETE
after three, so reads and deletes trail the writes they depend on. Each
stream runs for ``duration_seconds`` from its own start.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from common.list_walker import FixedDelimiter, ListPaginationWalker
from common.operation_worker import PutWorker, GetWorker, DeleteWorker
from common.run_context import RunContext, PUT, GET, LIST, DELETE
from common.worker_pool import WorkerPool
from configuration import (
    BenchmarkConfig,
    IDLE_POLL_SECONDS,
    PATTERN_DELIMITER,
    PROGRESS_INTERVAL_SECONDS,
    pattern_seed,
)
from persistence.metrics_aggregator import MetricsAggregator
from persistence.record import PhaseResult
from workload.key_sources import LaneKeySet

logger = logging.getLogger(__name__)

STAGGERED_OPERATIONS = (PUT, GET, LIST, DELETE)


class Lane:
    """The four workers of one lane sharing one key set."""

    def __init__(self, index: int, storage_system, context: RunContext, config: BenchmarkConfig,
                 idle_delay: float = IDLE_POLL_SECONDS):
        self.index = index
        self.keys = LaneKeySet(pattern_seed(config.seed, index), config.folder_capacities)
        self.workers = {
            PUT: PutWorker(index, storage_system, context[PUT], self.keys.next_put_key,
                           idle_delay=idle_delay),
            GET: GetWorker(index, storage_system, context[GET], self.keys.next_get_key,
                           idle_delay=idle_delay),
            LIST: ListPaginationWalker(
                storage_system,
                context[LIST],
                self.keys.next_list_prefix,
                delimiter_policy=FixedDelimiter(PATTERN_DELIMITER),
                idle_delay=idle_delay,
            ),
            DELETE: DeleteWorker(index, storage_system, context[DELETE], self.keys.next_delete_key,
                                 idle_delay=idle_delay),
        }


class StaggeredBenchmark:
    """Runs ``threads`` lanes concurrently with delayed GET/LIST/DELETE streams."""

    def __init__(
        self,
        storage_system,
        config: BenchmarkConfig,
        aggregator: MetricsAggregator = None,
        persistence=None,
        exporter=None,
        idle_delay: float = IDLE_POLL_SECONDS,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
    ):
        self.storage_system = storage_system
        self.config = config
        self.aggregator = aggregator or MetricsAggregator()
        self.persistence = persistence
        self.exporter = exporter
        self.idle_delay = idle_delay
        self.progress_interval = progress_interval

        self.context = RunContext()
        self.lanes: List[Lane] = []
        self.start_time: Optional[float] = None

        logger.info(
            f"Initialized staggered benchmark: {config.threads} lanes, "
            f"{config.duration_seconds}s per stream, delta {config.delta_seconds}s, "
            f"folders {config.folder_capacities}, seed {config.seed}"
        )

    def stream_delay(self, operation: str) -> float:
        return STAGGERED_OPERATIONS.index(operation) * self.config.delta_seconds

    async def execute(self) -> List[PhaseResult]:
        """Run all lanes and return one cumulative result per operation.

        Raises:
            TransportAbort: If a request cannot reach the service
        """
        await self.storage_system.create_bucket(ignore_errors=True)

        self.context.reset()
        self.lanes = [
            Lane(i, self.storage_system, self.context, self.config, self.idle_delay)
            for i in range(self.config.threads)
        ]

        self.start_time = time.time()
        self.context.deadline = self.start_time + self.config.total_duration
        pools: Dict[str, WorkerPool] = {}
        for operation in STAGGERED_OPERATIONS:
            delay = self.stream_delay(operation)
            pool = WorkerPool(name=operation.lower())
            pool.start(
                [lane.workers[operation] for lane in self.lanes],
                deadline=self.start_time + delay + self.config.duration_seconds,
                delay=delay,
            )
            pools[operation] = pool

        sampler = asyncio.create_task(self._sample_progress())
        waits = {op: asyncio.create_task(pool.wait()) for op, pool in pools.items()}
        try:
            spans = await asyncio.gather(*waits.values())
        except BaseException:
            for pool in pools.values():
                await pool.cancel()
            await asyncio.gather(*waits.values(), return_exceptions=True)
            raise
        finally:
            sampler.cancel()
            await asyncio.gather(sampler, return_exceptions=True)

        results = []
        for operation, (start, finish) in zip(waits, spans):
            result = PhaseResult.from_counters(
                self.context[operation],
                start_ts=start if start is not None else self.start_time,
                end_ts=finish if finish is not None else self.start_time,
                threads=self.config.threads,
            )
            results.append(result)
            self.aggregator.record_phase(result)
            if self.persistence is not None:
                self.persistence.store_result(result)

        logger.info(f"Staggered run finished after {time.time() - self.start_time:.1f}s\n"
                    f"{self.aggregator.format_summary(results)}")
        return results

    def progress_line(self, elapsed: float) -> str:
        parts = []
        for operation in STAGGERED_OPERATIONS:
            c = self.context[operation]
            text = f"{operation} {c.succeeded} ({c.throttled} throttled, {c.soft_errors} ERR"
            if operation == LIST:
                text += f", {c.rows} rows"
            parts.append(text + ")")
        return f"{elapsed:5.1f}s: " + ", ".join(parts)

    async def _sample_progress(self) -> None:
        while True:
            await asyncio.sleep(self.progress_interval)
            elapsed = time.time() - self.start_time
            logger.info(self.progress_line(elapsed))
            if self.exporter is not None:
                self.exporter.update_from_context(self.context, elapsed)
