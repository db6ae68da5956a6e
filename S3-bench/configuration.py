"""
Configuration constants for the S3 benchmark.

This module contains all configuration parameters including:
- Endpoint and credentials for the S3-compatible service
- Default run parameters (duration, threads, object size, seed)
- Workload layout constants for the backup-pattern generator
- Transport tuning for the shared connection pool
"""

import os
from dataclasses import dataclass


# =============================================================================
# CLOUD STORAGE CONFIGURATION
# =============================================================================

S3_ENDPOINT: str = os.getenv("S3_ENDPOINT", "http://s3.wasabisys.com")
AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

BUCKET_NAME: str = os.getenv("BUCKET_NAME", "wasabi-benchmark-bucket")
PATTERN_BUCKET_NAME: str = os.getenv("PATTERN_BUCKET_NAME", "veeam-test")

# =============================================================================
# RUN DEFAULTS
# =============================================================================

DEFAULT_DURATION_SECONDS: int = 60
DEFAULT_THREADS: int = 1
DEFAULT_LOOPS: int = 1
DEFAULT_OBJECT_SIZE: str = "1M"
DEFAULT_SEED: int = 1

# Staggered (pattern) variant
DEFAULT_DELTA_SECONDS: int = 5
DEFAULT_FOLDER_CAPACITY: int = 10
MIN_FOLDER_CAPACITY: int = 2
MAX_FOLDER_CAPACITY: int = 0xFFFF
MIN_PATTERN_DURATION_SECONDS: int = 4

# =============================================================================
# WORKLOAD LAYOUT
# =============================================================================

OBJECT_KEY_PREFIX: str = "Object-"
LIST_PREFIX_MODULUS: int = 100

PATTERN_PREFIX: str = "Veeam/Archive/veeam/"
PATTERN_EXTENSION: str = ".blk"
PATTERN_ZERO_SUFFIX: str = "0" * 32 + PATTERN_EXTENSION

# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

THROTTLE_STATUS: int = 503
THROTTLE_ERROR_CODES = ("SlowDown", "ServiceUnavailable", "503")
LIST_MAX_KEYS: int = 1000
DELIMITER_CYCLE: int = 10
DELIMITER_ROTATING_SLOTS: int = 8
PATTERN_DELIMITER: str = "/"
AMZ_DATE_FORMAT: str = "%Y%m%dT%H%M%SZ"

# =============================================================================
# WORKER TIMING
# =============================================================================

IDLE_POLL_SECONDS: float = 0.01  # Sleep when a lane has no keys yet
PROGRESS_INTERVAL_SECONDS: float = 1.0

# =============================================================================
# TRANSPORT
# =============================================================================

CONNECT_TIMEOUT_SECONDS: int = 30
IDLE_CONNECTION_SECONDS: int = 60
MAX_POOL_CONNECTIONS: int = 4096

# =============================================================================
# FILE SIZE CONSTANTS
# =============================================================================

BYTES_PER_KB: int = 1024
BYTES_PER_MB: int = 1024 * 1024
BYTES_PER_GB: int = 1024 * 1024 * 1024
BYTES_PER_TB: int = 1024 * BYTES_PER_GB

SIZE_UNITS = {
    "": 1,
    "B": 1,
    "K": BYTES_PER_KB,
    "M": BYTES_PER_MB,
    "G": BYTES_PER_GB,
    "T": BYTES_PER_TB,
}

# =============================================================================
# CLI DEFAULTS
# =============================================================================

DEFAULT_OUTPUT_DIR: str = "results"
DEFAULT_METRICS_PORT: int = 0  # 0 = exporter disabled


def parse_size(value: str) -> int:
    """Convert a size string such as ``1M`` or ``512K`` into bytes."""
    text = str(value).strip().upper()
    if text.endswith("IB"):
        text = text[:-2]
    elif text.endswith("B") and len(text) > 1 and not text[-2].isdigit():
        text = text[:-1]
    number = text.rstrip("".join(SIZE_UNITS))
    unit = text[len(number):]
    if not number or unit not in SIZE_UNITS:
        raise ValueError(f"Invalid size: {value!r}")
    size = float(number) * SIZE_UNITS[unit]
    if size < 0:
        raise ValueError(f"Invalid size: {value!r}")
    return int(size)


def normalize_endpoint(endpoint: str) -> str:
    """Default the scheme to http:// and drop trailing slashes."""
    endpoint = endpoint.strip()
    if not endpoint.startswith("http"):
        endpoint = "http://" + endpoint
    return endpoint.rstrip("/")


@dataclass(frozen=True)
class BenchmarkConfig:
    """Immutable run parameters shared read-only by every worker."""

    endpoint: str
    access_key: str
    secret_key: str
    bucket: str = BUCKET_NAME
    region: str = AWS_REGION
    threads: int = DEFAULT_THREADS
    duration_seconds: float = DEFAULT_DURATION_SECONDS
    object_size: int = BYTES_PER_MB
    loops: int = DEFAULT_LOOPS
    seed: int = DEFAULT_SEED
    max_folder1: int = DEFAULT_FOLDER_CAPACITY
    max_folder2: int = DEFAULT_FOLDER_CAPACITY
    max_folder3: int = DEFAULT_FOLDER_CAPACITY
    delta_seconds: float = DEFAULT_DELTA_SECONDS

    def __post_init__(self):
        object.__setattr__(self, "endpoint", normalize_endpoint(self.endpoint))

    @property
    def total_duration(self) -> float:
        """Wall-clock length of a staggered run."""
        return self.duration_seconds + 3 * self.delta_seconds

    @property
    def folder_capacities(self):
        return self.max_folder1, self.max_folder2, self.max_folder3

    def validate(self) -> "BenchmarkConfig":
        """Reject parameters the workers cannot run with.

        Raises:
            ValueError: If any parameter is out of range
        """
        if not self.access_key:
            raise ValueError("Missing access key")
        if not self.secret_key:
            raise ValueError("Missing secret key")
        if not self.bucket:
            raise ValueError("Missing bucket name")
        if self.threads < 1:
            raise ValueError(f"threads must be >= 1, got {self.threads}")
        if self.duration_seconds <= 0:
            raise ValueError(f"duration must be > 0, got {self.duration_seconds}")
        if self.loops < 1:
            raise ValueError(f"loops must be >= 1, got {self.loops}")
        if self.object_size < 0:
            raise ValueError(f"object size must be >= 0, got {self.object_size}")
        if self.seed < 1 or self.seed > 0xFFFFFFFFFFFFFFFF:
            raise ValueError(f"seed must be a 64-bit value >= 1, got {self.seed}")
        if self.delta_seconds < 0:
            raise ValueError(f"delta must be >= 0, got {self.delta_seconds}")
        for name, capacity in zip(("f1", "f2", "f3"), self.folder_capacities):
            if not MIN_FOLDER_CAPACITY <= capacity <= MAX_FOLDER_CAPACITY:
                raise ValueError(
                    f"{name} must be in [{MIN_FOLDER_CAPACITY}, {MAX_FOLDER_CAPACITY}], got {capacity}"
                )
        return self

    @classmethod
    def from_env(cls, **overrides) -> "BenchmarkConfig":
        """Build a config from environment defaults, applying explicit overrides."""
        values = {
            "endpoint": S3_ENDPOINT,
            "access_key": AWS_ACCESS_KEY_ID,
            "secret_key": AWS_SECRET_ACCESS_KEY,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def pattern_seed(initial_seed: int, lane_index: int) -> int:
    """Seed for one lane; lanes get disjoint, reproducible streams."""
    return (initial_seed + lane_index) & 0xFFFFFFFFFFFFFFFF


