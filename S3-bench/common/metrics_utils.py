"""
Shared utilities for benchmark metrics calculations: rates and byte-size formatting.
"""

import math

from configuration import BYTES_PER_KB

BYTE_SIZE_UNITS = ("B", "K", "M", "G", "T", "P", "E")


def calculate_rate(count: float, duration_seconds: float) -> float:
    """
    Calculate a per-second rate from a count and duration.

    Args:
        count: Number of events (operations, rows, bytes)
        duration_seconds: Duration in seconds

    Returns:
        Events per second, or 0.0 when the duration is zero or negative
    """
    if duration_seconds <= 0 or not math.isfinite(duration_seconds):
        return 0.0
    return count / duration_seconds


def calculate_requests_per_second(request_count: int, duration_seconds: float) -> float:
    """
    Calculate requests per second (RPS) from request count and duration.

    Args:
        request_count: Number of requests
        duration_seconds: Duration in seconds

    Returns:
        Requests per second (RPS)
    """
    return calculate_rate(request_count, duration_seconds)


def calculate_throughput_bytes_per_second(object_count: int, object_size: int,
                                          duration_seconds: float) -> float:
    """
    Calculate transfer throughput for ``object_count`` objects of ``object_size`` bytes.

    Returns:
        Bytes per second
    """
    return calculate_rate(object_count * object_size, duration_seconds)


def format_byte_size(num_bytes: float) -> str:
    """
    Render a byte count with a binary unit suffix, e.g. ``1.5M`` or ``512B``.
    """
    value = float(num_bytes)
    for unit in BYTE_SIZE_UNITS:
        if abs(value) < BYTES_PER_KB or unit == BYTE_SIZE_UNITS[-1]:
            text = f"{value:.1f}".rstrip("0").rstrip(".")
            return f"{text}{unit}"
        value /= BYTES_PER_KB
