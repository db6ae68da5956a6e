"""
Sequential benchmark: PUT, GET, LIST, LIST versions and DELETE phases per loop.
"""

import logging
import math
import os
from typing import List, Optional

from common.list_walker import ListPaginationWalker, RotatingDelimiter
from common.operation_worker import PutWorker, GetWorker, DeleteWorker
from common.phase_manager import PhaseManager
from common.run_context import RunContext, PUT, GET, LIST, LISTVER, DELETE
from common.worker_pool import WorkerPool
from configuration import BenchmarkConfig, IDLE_POLL_SECONDS
from persistence.metrics_aggregator import MetricsAggregator
from persistence.record import PhaseResult
from systems.signer import content_md5
from workload.key_sources import NumberedObjects

logger = logging.getLogger(__name__)


class SequentialBenchmark:
    """Runs each operation type in turn, ``threads`` workers at a time.

    PUT, GET and both LIST phases each last ``duration_seconds``. DELETE has
    no deadline and drains the objects uploaded in the same loop.
    """

    def __init__(
        self,
        storage_system,
        config: BenchmarkConfig,
        aggregator: MetricsAggregator = None,
        persistence=None,
        objects: NumberedObjects = None,
        idle_delay: float = IDLE_POLL_SECONDS,
    ):
        self.storage_system = storage_system
        self.config = config
        self.aggregator = aggregator or MetricsAggregator()
        self.persistence = persistence
        self.objects = objects or NumberedObjects()
        self.idle_delay = idle_delay

        self.context = RunContext()
        self.phase_manager = PhaseManager(self.context, config.object_size, config.threads)
        self.body = os.urandom(config.object_size)
        self.body_md5 = content_md5(self.body)

        logger.info(
            f"Initialized sequential benchmark: {config.threads} threads, "
            f"{config.duration_seconds}s per phase, {config.loops} loops, "
            f"object size {config.object_size} bytes"
        )

    async def prepare_bucket(self) -> None:
        """Create the bucket if needed and empty it."""
        await self.storage_system.create_bucket(ignore_errors=True)
        await self.storage_system.delete_all_objects()

    async def execute(self) -> List[PhaseResult]:
        """Run every loop and return all phase results in order.

        Raises:
            TransportAbort: If a request cannot reach the service
        """
        await self.prepare_bucket()
        results = []
        for loop in range(1, self.config.loops + 1):
            results.extend(await self.run_loop(loop))
        return results

    async def run_loop(self, loop: int) -> List[PhaseResult]:
        self.context.reset()
        self.objects.reset()
        threads = range(self.config.threads)
        results = []

        results.append(await self._run_phase(PUT, loop, [
            PutWorker(i, self.storage_system, self.context[PUT], self.objects.next_put_key,
                      body=self.body, content_md5=self.body_md5)
            for i in threads
        ]))
        self.objects.uploaded = self.context[PUT].attempted

        results.append(await self._run_phase(GET, loop, [
            GetWorker(i, self.storage_system, self.context[GET], self.objects.random_key,
                      stop_when_exhausted=True)
            for i in threads
        ]))

        for operation, versions in ((LIST, False), (LISTVER, True)):
            results.append(await self._run_phase(operation, loop, [
                ListPaginationWalker(
                    self.storage_system,
                    self.context[operation],
                    self.objects.list_prefix,
                    delimiter_policy=RotatingDelimiter(),
                    versions=versions,
                    idle_delay=self.idle_delay,
                )
                for _ in threads
            ]))

        results.append(await self._run_phase(DELETE, loop, [
            DeleteWorker(i, self.storage_system, self.context[DELETE], self.objects.next_delete_key,
                         stop_when_exhausted=True)
            for i in threads
        ], duration_seconds=math.inf))

        return results

    async def _run_phase(self, operation: str, loop: int, workers,
                         duration_seconds: Optional[float] = None) -> PhaseResult:
        if duration_seconds is None:
            duration_seconds = self.config.duration_seconds
        deadline = self.phase_manager.begin_phase(operation, loop, duration_seconds)
        pool = WorkerPool(name=f"{operation.lower()}-{loop}")
        start, finish = await pool.run(workers, deadline)
        result = self.phase_manager.finish_phase(start, finish)
        self.report(result)
        return result

    def report(self, result: PhaseResult) -> None:
        self.aggregator.record_phase(result)
        if self.persistence is not None:
            self.persistence.store_result(result)
        logger.info(self.aggregator.format_phase(result))
