"""
Async S3-compatible storage system used by the benchmark workers.

PUT/GET/DELETE go out as raw HTTP requests signed by ``RequestSigner`` over a
shared aiohttp connection pool. Listing, bucket creation and bulk cleanup use
an aioboto3 client.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aioboto3
import aiohttp
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from multidict import CIMultiDict
from yarl import URL

from common.errors import TransportAbort
from common.run_context import PUT, GET, DELETE
from configuration import (
    CONNECT_TIMEOUT_SECONDS,
    IDLE_CONNECTION_SECONDS,
    LIST_MAX_KEYS,
    MAX_POOL_CONNECTIONS,
    THROTTLE_ERROR_CODES,
    THROTTLE_STATUS,
    normalize_endpoint,
)
from systems.signer import RequestSigner, escape_path

logger = logging.getLogger(__name__)

DRAIN_CHUNK_BYTES = 64 * 1024
# botocore caps its own pool, the raw HTTP pool is sized separately
SDK_POOL_LIMIT = 2000


def is_success(status: int) -> bool:
    return 200 <= status < 300


def is_throttle_error(error: Exception) -> bool:
    """True for SDK errors carrying the service's slow-down signal."""
    if not isinstance(error, ClientError):
        return False
    response = error.response or {}
    code = response.get('Error', {}).get('Code', '')
    status = response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
    return status == THROTTLE_STATUS or code in THROTTLE_ERROR_CODES


class ObjectStorageSystem:
    """Async storage client with a signed raw-HTTP fast path."""

    def __init__(
        self,
        endpoint: str,
        bucket_name: str,
        credentials: dict,
        max_pool_connections: int = MAX_POOL_CONNECTIONS,
    ):
        self.endpoint = normalize_endpoint(endpoint)
        self.bucket_name = bucket_name
        self.credentials = credentials
        self.max_pool_connections = max_pool_connections

        self.signer = RequestSigner(
            credentials.get("access_key_id", ""),
            credentials.get("secret_access_key", ""),
        )

        # Single source of truth for config
        self._config = self._create_config()

        self.session = aioboto3.Session(
            aws_access_key_id=credentials.get("access_key_id"),
            aws_secret_access_key=credentials.get("secret_access_key"),
            region_name=credentials.get("region_name", "us-east-1"),
        )

        self.client = None
        self.http: Optional[aiohttp.ClientSession] = None

        logger.info(
            f"Initialized storage for {self.endpoint}/{bucket_name} "
            f"(max_pool_connections={max_pool_connections})"
        )

    def _create_config(self) -> Config:
        """Create the SDK config: path-style, no SDK-level retries."""
        return Config(
            max_pool_connections=min(self.max_pool_connections, SDK_POOL_LIMIT),
            connect_timeout=CONNECT_TIMEOUT_SECONDS,
            read_timeout=60,
            retries={
                'max_attempts': 1,
                'mode': 'standard',
            },
            s3={
                'addressing_style': 'path',
            },
            tcp_keepalive=True,
        )

    def _create_http_session(self) -> aiohttp.ClientSession:
        """Shared pool: bounded, TLS verification off, long idle keep-alive."""
        connector = aiohttp.TCPConnector(
            limit=self.max_pool_connections,
            limit_per_host=self.max_pool_connections,
            ssl=False,
            keepalive_timeout=IDLE_CONNECTION_SECONDS,
        )
        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT_SECONDS)
        return aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            skip_auto_headers=("Content-Type",),
        )

    async def __aenter__(self):
        """Async context manager entry."""
        self.http = self._create_http_session()
        self.client = await self.session.client(
            "s3",
            endpoint_url=self.endpoint,
            config=self._config,
            verify=False,
        ).__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.client:
            await self.client.__aexit__(exc_type, exc_val, exc_tb)
            self.client = None
        if self.http:
            await self.http.close()
            self.http = None

    def object_path(self, key: str) -> str:
        return escape_path(f"/{self.bucket_name}/{key}")

    async def _request(
        self,
        operation: str,
        method: str,
        key: str,
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> int:
        """Sign and send one request, returning its HTTP status.

        Raises:
            TransportAbort: If the service cannot be reached
        """
        if not self.http:
            raise RuntimeError("Storage client not initialized. Use async context manager.")

        path = self.object_path(key)
        request_headers = CIMultiDict(headers or {})
        self.signer.sign(method, path, request_headers)
        url = URL(self.endpoint + path, encoded=True)

        try:
            async with self.http.request(method, url, data=body, headers=request_headers) as response:
                status = response.status
                if is_success(status) and method == "GET":
                    async for _ in response.content.iter_chunked(DRAIN_CHUNK_BYTES):
                        pass
                elif not is_success(status) and status != THROTTLE_STATUS:
                    text = await response.text(errors="replace")
                    logger.warning(f"{operation} status {status} for {key}: {text}")
                else:
                    await response.read()
                return status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportAbort(operation, key, e) from e

    async def put_object(self, key: str, body: bytes, content_md5: Optional[str] = None) -> int:
        headers = {
            "Content-Length": str(len(body)),
            "Content-Type": "application/octet-stream",
        }
        if content_md5:
            headers["Content-MD5"] = content_md5
        return await self._request(PUT, "PUT", key, body=body, headers=headers)

    async def get_object(self, key: str) -> int:
        """GET an object and discard its body."""
        return await self._request(GET, "GET", key)

    async def delete_object(self, key: str) -> int:
        return await self._request(DELETE, "DELETE", key)

    async def list_objects_v2(self, **params) -> Dict[str, Any]:
        if not self.client:
            raise RuntimeError("Storage client not initialized. Use async context manager.")
        return await self.client.list_objects_v2(Bucket=self.bucket_name, **params)

    async def list_object_versions(self, **params) -> Dict[str, Any]:
        if not self.client:
            raise RuntimeError("Storage client not initialized. Use async context manager.")
        return await self.client.list_object_versions(Bucket=self.bucket_name, **params)

    async def create_bucket(self, ignore_errors: bool = True) -> bool:
        """Create the benchmark bucket; it may already exist."""
        try:
            await self.client.create_bucket(Bucket=self.bucket_name)
            logger.info(f"Created bucket {self.bucket_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            if not ignore_errors:
                raise
            logger.warning(f"CreateBucket {self.bucket_name} error, ignoring: {e}")
            return False

    async def delete_all_objects(self) -> int:
        """Delete every object version and delete marker in the bucket.

        Each listed page is removed by a concurrent quiet DeleteObjects call.
        A missing bucket counts as already empty.

        Returns:
            Number of versions and markers submitted for deletion
        """
        key_marker = None
        version_id_marker = None
        deletes = []
        submitted = 0
        completed = False

        try:
            while True:
                params = {'MaxKeys': LIST_MAX_KEYS}
                if key_marker:
                    params['KeyMarker'] = key_marker
                if version_id_marker:
                    params['VersionIdMarker'] = version_id_marker
                try:
                    page = await self.list_object_versions(**params)
                except ClientError as e:
                    if e.response.get('Error', {}).get('Code') == 'NoSuchBucket':
                        logger.info(f"Bucket {self.bucket_name} does not exist, nothing to clean")
                        break
                    raise

                objects = [
                    {'Key': v['Key'], 'VersionId': v['VersionId']}
                    for v in page.get('Versions', []) + page.get('DeleteMarkers', [])
                ]
                if objects:
                    submitted += len(objects)
                    deletes.append(asyncio.create_task(self.client.delete_objects(
                        Bucket=self.bucket_name,
                        Delete={'Objects': objects, 'Quiet': True},
                    )))

                if not page.get('IsTruncated'):
                    break
                key_marker = page.get('NextKeyMarker')
                version_id_marker = page.get('NextVersionIdMarker')

            if deletes:
                await asyncio.gather(*deletes)
            completed = True
        finally:
            if not completed:
                pending = [t for t in deletes if not t.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
                    logger.warning(f"Cleanup of {self.bucket_name} failed, cancelled {len(pending)} deletes")

        logger.info(f"Removed {submitted} versions from {self.bucket_name}")
        return submitted
