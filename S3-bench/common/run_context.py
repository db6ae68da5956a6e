"""
Shared run state handed by reference to every worker.

All workers run as tasks on one event loop, so the integer counters below are
mutated without locks; each ``+=`` completes before another task can run.
"""

import time
from typing import Dict, Optional

PUT = "PUT"
GET = "GET"
LIST = "LIST"
LISTVER = "LISTVER"
DELETE = "DELETE"

OPERATIONS = (PUT, GET, LIST, LISTVER, DELETE)


class OperationCounters:
    """Counters for one operation type.

    ``attempted`` is bumped before every call and taken back when the call is
    throttled, so once workers stop ``attempted == succeeded + soft_errors``
    and ``issued == succeeded + throttled + soft_errors``.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.reset()

    def reset(self) -> None:
        self.attempted = 0
        self.succeeded = 0
        self.throttled = 0
        self.soft_errors = 0
        self.rows = 0

    @property
    def issued(self) -> int:
        """Calls actually sent, throttled ones included."""
        return self.attempted + self.throttled

    def snapshot(self) -> Dict[str, int]:
        return {
            'attempted': self.attempted,
            'succeeded': self.succeeded,
            'throttled': self.throttled,
            'soft_errors': self.soft_errors,
            'rows': self.rows,
        }

    def __repr__(self) -> str:
        return (
            f"OperationCounters({self.operation}: attempted={self.attempted}, "
            f"succeeded={self.succeeded}, throttled={self.throttled}, "
            f"soft_errors={self.soft_errors}, rows={self.rows})"
        )


class RunContext:
    """Counters for every operation plus the current phase deadline."""

    def __init__(self):
        self.counters: Dict[str, OperationCounters] = {
            op: OperationCounters(op) for op in OPERATIONS
        }
        self.deadline: Optional[float] = None

    def __getitem__(self, operation: str) -> OperationCounters:
        return self.counters[operation]

    def reset(self) -> None:
        for counters in self.counters.values():
            counters.reset()
        self.deadline = None

    def start_phase(self, duration_seconds: float, now: Optional[float] = None) -> float:
        """Set a fresh deadline ``duration_seconds`` from now and return it."""
        self.deadline = (now if now is not None else time.time()) + duration_seconds
        return self.deadline

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {op: c.snapshot() for op, c in self.counters.items()}
