"""
Phase manager for tracking benchmark phases and their timing.
"""

import time
import logging
from typing import Optional

from common.run_context import RunContext
from persistence.record import PhaseResult

logger = logging.getLogger(__name__)


class PhaseManager:
    """Opens and closes the timed phases of one run over a shared RunContext."""

    def __init__(self, context: RunContext, object_size: int = 0, threads: int = 0):
        self.context = context
        self.object_size = object_size
        self.threads = threads
        self.operation: str = ""
        self.loop: int = 0
        self.phase_start_ts: Optional[float] = None

    def begin_phase(self, operation: str, loop: int, duration_seconds: float) -> float:
        """Begin a new phase and return its deadline.

        Args:
            operation: Operation type measured by the phase (PUT, GET, ...)
            loop: 1-based loop number
            duration_seconds: Phase length; ``math.inf`` for draining phases
        """
        self.operation = operation
        self.loop = loop
        self.phase_start_ts = time.time()
        deadline = self.context.start_phase(duration_seconds, now=self.phase_start_ts)
        logger.info(f"Loop {loop}: running {operation} with {self.threads} threads")
        return deadline

    def finish_phase(self, start_ts: Optional[float] = None,
                     end_ts: Optional[float] = None) -> PhaseResult:
        """Close the current phase and freeze its counters into a PhaseResult."""
        if not self.is_phase_active():
            raise RuntimeError("No phase is active")
        result = PhaseResult.from_counters(
            self.context[self.operation],
            start_ts=start_ts if start_ts is not None else self.phase_start_ts,
            end_ts=end_ts if end_ts is not None else time.time(),
            loop=self.loop,
            object_size=self.object_size,
            threads=self.threads,
        )
        self.reset()
        return result

    def is_phase_active(self) -> bool:
        return bool(self.operation)

    def reset(self) -> None:
        self.operation = ""
        self.phase_start_ts = None

    def __repr__(self) -> str:
        return f"PhaseManager(operation='{self.operation}', loop={self.loop}, threads={self.threads})"
