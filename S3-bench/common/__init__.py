"""
Common utilities for the S3 benchmark.
"""

from .phase_manager import PhaseManager
from .worker_pool import WorkerPool

__all__ = ['PhaseManager', 'WorkerPool']
