"""
Paginated LIST stress: walks truncated listings and hops between prefixes.

The walker keeps one cursor. A non-empty page that carries a next cursor is
followed; anything else (empty page, last page, error) resets the cursor,
picks a new prefix and rotates the delimiter, so a bad or empty partition
never stalls the walker.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from common.run_context import OperationCounters, LIST, LISTVER
from configuration import (
    DELIMITER_CYCLE,
    DELIMITER_ROTATING_SLOTS,
    IDLE_POLL_SECONDS,
    LIST_MAX_KEYS,
)
from systems.base import is_throttle_error

logger = logging.getLogger(__name__)


class PaginationCursor:
    """Server-issued paging state plus the prefix/delimiter being listed."""

    def __init__(self, prefix: Optional[str] = None, delimiter: Optional[str] = None):
        self.continuation_token: Optional[str] = None
        self.key_marker: Optional[str] = None
        self.version_id_marker: Optional[str] = None
        self.prefix = prefix
        self.delimiter = delimiter

    def clear(self) -> None:
        self.continuation_token = None
        self.key_marker = None
        self.version_id_marker = None


class RotatingDelimiter:
    """Cycles 0..9: slots 0..7 group on ``"<n>"``, slots 8..9 list flat."""

    def __init__(self):
        self.counter = 0
        self.current: Optional[str] = None

    def rotate(self) -> Optional[str]:
        self.counter = (self.counter + 1) % DELIMITER_CYCLE
        if self.counter < DELIMITER_ROTATING_SLOTS:
            self.current = str(self.counter)
        else:
            self.current = None
        return self.current


class FixedDelimiter:

    def __init__(self, delimiter: str):
        self.current = delimiter

    def rotate(self) -> Optional[str]:
        return self.current


class ListPaginationWalker:
    """Drives ListObjectsV2 or ListObjectVersions against one storage system.

    Args:
        storage_system: Object exposing ``list_objects_v2`` / ``list_object_versions``
        counters: Shared counters for this listing type
        next_prefix: Returns the next prefix to list, or None if none is known yet
        delimiter_policy: ``RotatingDelimiter`` or ``FixedDelimiter``
        versions: List object versions instead of objects
    """

    def __init__(
        self,
        storage_system,
        counters: OperationCounters,
        next_prefix: Callable[[], Optional[str]],
        delimiter_policy=None,
        versions: bool = False,
        page_size: int = LIST_MAX_KEYS,
        idle_delay: float = IDLE_POLL_SECONDS,
    ):
        self.storage_system = storage_system
        self.counters = counters
        self.next_prefix = next_prefix
        self.delimiter_policy = delimiter_policy or RotatingDelimiter()
        self.versions = versions
        self.page_size = page_size
        self.idle_delay = idle_delay
        self.cursor = PaginationCursor(delimiter=self.delimiter_policy.current)

    @property
    def operation(self) -> str:
        return LISTVER if self.versions else LIST

    def request_params(self) -> Dict[str, Any]:
        cursor = self.cursor
        params = {'MaxKeys': self.page_size, 'Prefix': cursor.prefix or ""}
        if cursor.delimiter is not None:
            params['Delimiter'] = cursor.delimiter
        if self.versions:
            if cursor.key_marker:
                params['KeyMarker'] = cursor.key_marker
            if cursor.version_id_marker:
                params['VersionIdMarker'] = cursor.version_id_marker
        elif cursor.continuation_token:
            params['ContinuationToken'] = cursor.continuation_token
        return params

    def select_prefix(self) -> bool:
        prefix = self.next_prefix()
        if prefix is None:
            return False
        self.cursor.prefix = prefix
        return True

    def reset(self) -> None:
        """Drop the cursor, move to a new prefix and rotate the delimiter."""
        self.cursor.clear()
        self.select_prefix()
        self.cursor.delimiter = self.delimiter_policy.rotate()

    def _advance(self, page: Dict[str, Any]) -> bool:
        if self.versions:
            next_key_marker = page.get('NextKeyMarker')
            if not next_key_marker:
                return False
            self.cursor.key_marker = next_key_marker
            self.cursor.version_id_marker = page.get('NextVersionIdMarker')
            return True
        token = page.get('NextContinuationToken')
        if not token:
            return False
        self.cursor.continuation_token = token
        return True

    async def _list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.versions:
            return await self.storage_system.list_object_versions(**params)
        return await self.storage_system.list_objects_v2(**params)

    async def step(self) -> bool:
        """Issue one list call and update the cursor.

        Returns:
            True if a call was issued, False if no prefix was available yet
        """
        if self.cursor.prefix is None and not self.select_prefix():
            await asyncio.sleep(self.idle_delay)
            return False

        counters = self.counters
        params = self.request_params()
        counters.attempted += 1
        try:
            page = await self._list(params)
        except (ClientError, BotoCoreError) as e:
            if is_throttle_error(e):
                counters.throttled += 1
                counters.attempted -= 1
            else:
                counters.soft_errors += 1
            logger.warning(f"{self.operation} failed {params}: {e}")
            self.reset()
            return True

        counters.succeeded += 1
        items = page.get('Versions' if self.versions else 'Contents') or []
        counters.rows += len(items) + len(page.get('CommonPrefixes') or [])

        if not items or not self._advance(page):
            self.reset()
        return True

    async def run(self, deadline: float) -> Tuple[float, float]:
        """Walk listings until the deadline; returns (start, finish) timestamps."""
        start = time.time()
        while time.time() < deadline:
            await self.step()
        return start, time.time()
