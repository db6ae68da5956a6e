"""
Async worker pool running deadline-bounded workers as tasks on one event loop.
"""

import asyncio
import logging
import time
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class WorkerPool:
    """Starts workers as tasks and waits for all of them.

    A worker is anything with an async ``run(deadline)`` returning its
    ``(start, finish)`` timestamps. If one worker raises, the remaining
    tasks are cancelled and the exception propagates to the caller.
    """

    def __init__(self, name: str = "pool"):
        self.name = name
        self.tasks: List[asyncio.Task] = []
        self.is_running = False

    def start(self, workers: Iterable, deadline: float, delay: float = 0.0) -> List[asyncio.Task]:
        """Schedule ``workers``; with ``delay`` each sleeps that long before running."""
        started = []
        for worker in workers:
            task = asyncio.create_task(self._run_worker(worker, deadline, delay))
            started.append(task)
        self.tasks.extend(started)
        self.is_running = True
        logger.debug(f"{self.name}: started {len(started)} workers (delay {delay}s)")
        return started

    async def _run_worker(self, worker, deadline: float, delay: float) -> Tuple[float, float]:
        if delay > 0:
            await asyncio.sleep(delay)
        return await worker.run(deadline)

    async def wait(self) -> Tuple[Optional[float], Optional[float]]:
        """Wait for every started worker.

        Returns:
            (earliest start, latest finish) over all workers, or (None, None)
            if none was started

        Raises:
            Exception: The first exception raised by a worker
        """
        tasks = list(self.tasks)
        try:
            spans = await asyncio.gather(*tasks)
        except BaseException:
            await self.cancel()
            raise
        finally:
            self.tasks.clear()
            self.is_running = False
        if not spans:
            return None, None
        return min(s for s, _ in spans), max(f for _, f in spans)

    async def cancel(self) -> None:
        """Cancel unfinished workers and wait until they are gone."""
        pending = [t for t in self.tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"{self.name}: cancelled {len(pending)} workers")

    async def run(self, workers: Iterable, deadline: float) -> Tuple[float, float]:
        """Run ``workers`` to completion; returns the phase (start, finish)."""
        start = time.time()
        self.start(workers, deadline)
        first, last = await self.wait()
        return (first if first is not None else start), (last if last is not None else time.time())
