"""
Deadline-bounded workers, one per concurrent operation stream.

A worker runs a single operation type until ``time.time() >= deadline`` (or,
for draining deletes, until its key source runs dry) and writes straight into
the shared ``OperationCounters``; nothing is buffered per worker.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Tuple

from common.run_context import OperationCounters, PUT, GET, DELETE
from configuration import IDLE_POLL_SECONDS, THROTTLE_STATUS
from systems.base import is_success

logger = logging.getLogger(__name__)

KeySource = Callable[[], Optional[str]]


class OperationWorker:
    """Issues one operation type against keys pulled from ``next_key``.

    ``next_key`` returns the key of the next call, or None when no key is
    available. With ``stop_when_exhausted`` a None ends the worker; otherwise
    the worker sleeps ``IDLE_POLL_SECONDS`` and asks again.
    """

    operation: str = ""

    def __init__(
        self,
        worker_id: int,
        storage_system,
        counters: OperationCounters,
        next_key: KeySource,
        stop_when_exhausted: bool = False,
        idle_delay: float = IDLE_POLL_SECONDS,
    ):
        self.worker_id = worker_id
        self.storage_system = storage_system
        self.counters = counters
        self.next_key = next_key
        self.stop_when_exhausted = stop_when_exhausted
        self.idle_delay = idle_delay
        self.running = False

    async def send(self, key: str) -> int:
        raise NotImplementedError

    async def run(self, deadline: float) -> Tuple[float, float]:
        """Loop until the deadline; returns this worker's (start, finish) timestamps."""
        start = time.time()
        self.running = True
        try:
            while time.time() < deadline:
                key = self.next_key()
                if key is None:
                    if self.stop_when_exhausted:
                        break
                    await asyncio.sleep(self.idle_delay)
                    continue
                await self.issue(key, deadline)
        finally:
            self.running = False
        return start, time.time()

    async def issue(self, key: str, deadline: float) -> int:
        """Send ``key`` until it is not throttled or the deadline passes.

        Raises:
            TransportAbort: Propagated from the storage system
        """
        counters = self.counters
        while True:
            counters.attempted += 1
            status = await self.send(key)
            if status == THROTTLE_STATUS:
                counters.throttled += 1
                counters.attempted -= 1
                if time.time() >= deadline:
                    return status
                continue
            if is_success(status):
                counters.succeeded += 1
            else:
                counters.soft_errors += 1
                logger.debug(f"Worker {self.worker_id}: {self.operation} {key} returned {status}")
            return status


class PutWorker(OperationWorker):
    operation = PUT

    def __init__(self, worker_id, storage_system, counters, next_key, body: bytes = b"",
                 content_md5: Optional[str] = None, **kwargs):
        super().__init__(worker_id, storage_system, counters, next_key, **kwargs)
        self.body = body
        self.content_md5 = content_md5

    async def send(self, key: str) -> int:
        return await self.storage_system.put_object(key, self.body, self.content_md5)


class GetWorker(OperationWorker):
    operation = GET

    async def send(self, key: str) -> int:
        return await self.storage_system.get_object(key)


class DeleteWorker(OperationWorker):
    operation = DELETE

    async def send(self, key: str) -> int:
        return await self.storage_system.delete_object(key)
