"""
Factory module for creating storage system instances.
"""

import logging

# CRITICAL: Suppress boto3/botocore logging BEFORE importing any boto3-related modules
logging.getLogger('botocore').setLevel(logging.CRITICAL)
logging.getLogger('botocore.credentials').setLevel(logging.CRITICAL)
logging.getLogger('boto3').setLevel(logging.CRITICAL)
logging.getLogger('aioboto3').setLevel(logging.CRITICAL)
logging.getLogger('aiobotocore').setLevel(logging.CRITICAL)
logging.getLogger('urllib3').setLevel(logging.CRITICAL)

from configuration import BenchmarkConfig, MAX_POOL_CONNECTIONS
from systems.base import ObjectStorageSystem

logger = logging.getLogger(__name__)


def create_storage_system(config: BenchmarkConfig, max_pool_connections: int = None) -> ObjectStorageSystem:
    """Create the storage system for a benchmark run.

    Args:
        config: Run parameters carrying endpoint, bucket and credentials
        max_pool_connections: Connection pool size (default: enough for every worker)

    Returns:
        Storage system instance, to be entered as an async context manager
    """
    credentials = {
        "access_key_id": config.access_key,
        "secret_access_key": config.secret_key,
        "region_name": config.region,
    }
    if max_pool_connections is None:
        # Four concurrent streams per lane in the staggered variant
        max_pool_connections = min(MAX_POOL_CONNECTIONS, max(4 * config.threads, 16))
    return ObjectStorageSystem(
        endpoint=config.endpoint,
        bucket_name=config.bucket,
        credentials=credentials,
        max_pool_connections=max_pool_connections,
    )
