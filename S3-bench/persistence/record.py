"""
Basic data structures for the S3 benchmark.
"""

import time


class PhaseResult:
    """Counters and timing of one finished phase."""

    def __init__(self, operation: str, loop: int = 1, attempted: int = 0, succeeded: int = 0,
                 throttled: int = 0, soft_errors: int = 0, rows: int = 0,
                 start_ts: float = None, end_ts: float = None, object_size: int = 0,
                 threads: int = 0):
        self.operation = operation
        self.loop = loop
        self.attempted = attempted
        self.succeeded = succeeded
        self.throttled = throttled
        self.soft_errors = soft_errors
        self.rows = rows
        self.start_ts = start_ts if start_ts is not None else time.time()
        self.end_ts = end_ts if end_ts is not None else self.start_ts
        self.object_size = object_size
        self.threads = threads

    @classmethod
    def from_counters(cls, counters, start_ts: float, end_ts: float,
                      loop: int = 1, object_size: int = 0, threads: int = 0) -> "PhaseResult":
        """Freeze an ``OperationCounters`` into a result."""
        return cls(
            operation=counters.operation,
            loop=loop,
            attempted=counters.attempted,
            succeeded=counters.succeeded,
            throttled=counters.throttled,
            soft_errors=counters.soft_errors,
            rows=counters.rows,
            start_ts=start_ts,
            end_ts=end_ts,
            object_size=object_size,
            threads=threads,
        )

    @property
    def elapsed_seconds(self) -> float:
        return max(self.end_ts - self.start_ts, 0.0)

    def to_dict(self) -> dict:
        return {
            'loop': self.loop,
            'operation': self.operation,
            'threads': self.threads,
            'attempted': self.attempted,
            'succeeded': self.succeeded,
            'throttled': self.throttled,
            'soft_errors': self.soft_errors,
            'rows': self.rows,
            'object_size': self.object_size,
            'start_ts': self.start_ts,
            'end_ts': self.end_ts,
        }

    def __repr__(self) -> str:
        return (
            f"PhaseResult(loop={self.loop}, operation='{self.operation}', "
            f"succeeded={self.succeeded}, throttled={self.throttled}, "
            f"elapsed={self.elapsed_seconds:.2f}s)"
        )
