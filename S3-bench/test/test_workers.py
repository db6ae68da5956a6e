"""
Tests for operation workers, the list pagination walker and the worker pool.
"""

import asyncio
import os
import sys
import time
import unittest

from botocore.exceptions import ClientError

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from common.errors import TransportAbort
from common.list_walker import FixedDelimiter, ListPaginationWalker, RotatingDelimiter
from common.operation_worker import PutWorker, GetWorker, DeleteWorker
from common.run_context import RunContext, OperationCounters, PUT, GET, LIST, LISTVER, DELETE
from common.worker_pool import WorkerPool
from fake_storage import FakeStorage


def client_error(code, status, operation='ListObjectsV2'):
    return ClientError(
        {'Error': {'Code': code, 'Message': code}, 'ResponseMetadata': {'HTTPStatusCode': status}},
        operation,
    )


class ScriptedLister:
    """Returns queued pages (or raises queued errors) and records the params."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    async def list_objects_v2(self, **params):
        self.calls.append(params)
        page = self.pages.pop(0) if self.pages else {'Contents': []}
        if isinstance(page, Exception):
            raise page
        return page

    async def list_object_versions(self, **params):
        return await self.list_objects_v2(**params)


def key_counter(prefix="Object-"):
    state = {'n': 0}

    def next_key():
        state['n'] += 1
        return f"{prefix}{state['n']}"
    return next_key


class TestRunContext(unittest.TestCase):

    def test_counters_start_at_zero(self):
        context = RunContext()
        for operation in (PUT, GET, LIST, LISTVER, DELETE):
            self.assertEqual(context[operation].snapshot(),
                             {'attempted': 0, 'succeeded': 0, 'throttled': 0, 'soft_errors': 0, 'rows': 0})

    def test_reset_clears_counters_and_deadline(self):
        context = RunContext()
        context[PUT].attempted = 5
        context.start_phase(10, now=100.0)
        self.assertEqual(context.deadline, 110.0)
        context.reset()
        self.assertEqual(context[PUT].attempted, 0)
        self.assertIsNone(context.deadline)

    def test_issued_includes_throttled(self):
        counters = OperationCounters(PUT)
        counters.attempted, counters.throttled = 4, 3
        self.assertEqual(counters.issued, 7)


class TestOperationWorker(unittest.TestCase):

    def test_put_success_stub(self):
        storage = FakeStorage()
        counters = OperationCounters(PUT)
        worker = PutWorker(0, storage, counters, key_counter(), body=b"x")

        asyncio.run(worker.run(time.time() + 0.05))

        self.assertGreaterEqual(counters.succeeded, 1)
        self.assertEqual(counters.throttled, 0)
        self.assertEqual(counters.soft_errors, 0)
        self.assertEqual(counters.attempted, counters.succeeded)
        self.assertEqual(len(storage.objects), counters.succeeded)

    def test_first_five_throttled(self):
        storage = FakeStorage(statuses=[503] * 5)
        counters = OperationCounters(PUT)
        worker = PutWorker(0, storage, counters, key_counter())

        asyncio.run(worker.run(time.time() + 0.05))

        self.assertEqual(counters.throttled, 5)
        self.assertGreaterEqual(counters.succeeded, 1)
        self.assertEqual(counters.attempted, counters.succeeded + counters.soft_errors)
        self.assertEqual(counters.issued, counters.succeeded + counters.throttled + counters.soft_errors)
        # throttled calls are retried with the same key
        self.assertEqual({key for _, key in storage.calls[:6]}, {"Object-1"})

    def test_throttle_retry_stops_at_deadline(self):
        storage = FakeStorage(default_status=503)
        counters = OperationCounters(GET)
        worker = GetWorker(0, storage, counters, key_counter())

        started = time.time()
        asyncio.run(worker.run(started + 0.05))

        self.assertLess(time.time() - started, 1.0)
        self.assertEqual(counters.succeeded, 0)
        self.assertEqual(counters.attempted, 0)
        self.assertGreater(counters.throttled, 0)

    def test_other_status_is_soft_error(self):
        storage = FakeStorage()
        counters = OperationCounters(GET)
        worker = GetWorker(0, storage, counters, key_counter("missing-"))

        asyncio.run(worker.run(time.time() + 0.02))

        self.assertEqual(counters.succeeded, 0)
        self.assertGreater(counters.soft_errors, 0)
        self.assertEqual(counters.attempted, counters.soft_errors)

    def test_stop_when_exhausted(self):
        storage = FakeStorage()
        storage.objects = {"a": b"", "b": b""}
        keys = iter(["a", "b"])
        counters = OperationCounters(DELETE)
        worker = DeleteWorker(0, storage, counters, lambda: next(keys, None), stop_when_exhausted=True)

        start, finish = asyncio.run(worker.run(float("inf")))

        self.assertEqual(counters.succeeded, 2)
        self.assertEqual(storage.objects, {})
        self.assertLessEqual(start, finish)

    def test_idle_until_key_available(self):
        storage = FakeStorage()
        counters = OperationCounters(GET)
        worker = GetWorker(0, storage, counters, lambda: None, idle_delay=0.001)

        asyncio.run(worker.run(time.time() + 0.02))

        self.assertEqual(storage.calls, [])
        self.assertEqual(counters.attempted, 0)

    def test_transport_abort_propagates(self):
        class Unreachable(FakeStorage):
            async def put_object(self, key, body, content_md5=None):
                raise TransportAbort(PUT, key, OSError("connection refused"))

        counters = OperationCounters(PUT)
        worker = PutWorker(0, Unreachable(), counters, key_counter())

        with self.assertRaises(TransportAbort) as ctx:
            asyncio.run(worker.run(time.time() + 5))
        self.assertEqual(ctx.exception.key, "Object-1")
        self.assertIn("connection refused", str(ctx.exception))


class TestListPaginationWalker(unittest.TestCase):

    def _walker(self, storage, counters, **kwargs):
        return ListPaginationWalker(storage, counters, lambda: "Object-1", **kwargs)

    def test_three_pages_then_empty(self):
        item = [{'Key': 'Object-1'}]
        storage = ScriptedLister([
            {'Contents': item, 'NextContinuationToken': 't1'},
            {'Contents': item, 'NextContinuationToken': 't2'},
            {'Contents': item, 'NextContinuationToken': 't3'},
            {'Contents': []},
            {'Contents': item},
        ])
        counters = OperationCounters(LIST)
        walker = self._walker(storage, counters, delimiter_policy=FixedDelimiter("/"))

        async def walk():
            for _ in range(5):
                await walker.step()
        asyncio.run(walk())

        tokens = [call.get('ContinuationToken') for call in storage.calls]
        self.assertEqual(tokens, [None, 't1', 't2', 't3', None])
        self.assertEqual(counters.succeeded, 5)
        self.assertEqual(counters.rows, 4)
        self.assertTrue(all(call['Delimiter'] == "/" for call in storage.calls))
        self.assertTrue(all(call['MaxKeys'] == 1000 for call in storage.calls))

    def test_last_page_resets_cursor(self):
        storage = ScriptedLister([
            {'Contents': [{'Key': 'a'}], 'NextContinuationToken': 't1'},
            {'Contents': [{'Key': 'b'}]},
            {'Contents': [{'Key': 'c'}]},
        ])
        walker = self._walker(storage, OperationCounters(LIST))

        async def walk():
            for _ in range(3):
                await walker.step()
        asyncio.run(walk())

        self.assertEqual([c.get('ContinuationToken') for c in storage.calls], [None, 't1', None])

    def test_common_prefixes_count_as_rows(self):
        storage = ScriptedLister([
            {'Contents': [{'Key': 'a'}], 'CommonPrefixes': [{'Prefix': 'p/'}, {'Prefix': 'q/'}]},
        ])
        counters = OperationCounters(LIST)
        asyncio.run(self._walker(storage, counters).step())
        self.assertEqual(counters.rows, 3)

    def test_versions_follow_key_marker(self):
        storage = ScriptedLister([
            {'Versions': [{'Key': 'a'}], 'NextKeyMarker': 'a', 'NextVersionIdMarker': 'v1'},
            {'Versions': [{'Key': 'b'}]},
        ])
        counters = OperationCounters(LISTVER)
        walker = self._walker(storage, counters, versions=True)
        self.assertEqual(walker.operation, LISTVER)

        async def walk():
            await walker.step()
            await walker.step()
        asyncio.run(walk())

        self.assertNotIn('KeyMarker', storage.calls[0])
        self.assertEqual(storage.calls[1]['KeyMarker'], 'a')
        self.assertEqual(storage.calls[1]['VersionIdMarker'], 'v1')
        self.assertEqual(counters.rows, 2)

    def test_throttle_error_moves_attempt_to_throttled(self):
        storage = ScriptedLister([
            {'Contents': [{'Key': 'a'}], 'NextContinuationToken': 't1'},
            client_error('SlowDown', 503),
            {'Contents': [{'Key': 'a'}]},
        ])
        counters = OperationCounters(LIST)
        walker = self._walker(storage, counters)

        async def walk():
            for _ in range(3):
                await walker.step()
        asyncio.run(walk())

        self.assertEqual(counters.throttled, 1)
        self.assertEqual(counters.soft_errors, 0)
        self.assertEqual(counters.succeeded, 2)
        self.assertEqual(counters.attempted, 2)
        # the failed call used t1, the next one starts over
        self.assertEqual([c.get('ContinuationToken') for c in storage.calls], [None, 't1', None])

    def test_other_error_is_soft_error(self):
        storage = ScriptedLister([client_error('AccessDenied', 403)])
        counters = OperationCounters(LIST)
        with self.assertLogs('common.list_walker', level='WARNING'):
            asyncio.run(self._walker(storage, counters).step())
        self.assertEqual(counters.soft_errors, 1)
        self.assertEqual(counters.attempted, 1)
        self.assertEqual(counters.succeeded, 0)

    def test_waits_for_prefix(self):
        storage = ScriptedLister([])
        walker = ListPaginationWalker(storage, OperationCounters(LIST), lambda: None, idle_delay=0.001)
        issued = asyncio.run(walker.step())
        self.assertFalse(issued)
        self.assertEqual(storage.calls, [])

    def test_delimiter_rotates_on_reset(self):
        storage = ScriptedLister([{'Contents': []}] * 11)
        walker = self._walker(storage, OperationCounters(LIST), delimiter_policy=RotatingDelimiter())

        async def walk():
            for _ in range(11):
                await walker.step()
        asyncio.run(walk())

        delimiters = [c.get('Delimiter') for c in storage.calls]
        self.assertEqual(delimiters, [None, "1", "2", "3", "4", "5", "6", "7", None, None, "0"])


class TestRotatingDelimiter(unittest.TestCase):

    def test_cycle(self):
        policy = RotatingDelimiter()
        self.assertIsNone(policy.current)
        values = [policy.rotate() for _ in range(10)]
        self.assertEqual(values, ["1", "2", "3", "4", "5", "6", "7", None, None, "0"])


class TestWorkerPool(unittest.TestCase):

    def test_run_returns_min_start_max_finish(self):
        storage = FakeStorage()
        counters = OperationCounters(PUT)
        workers = [PutWorker(i, storage, counters, key_counter(f"w{i}-")) for i in range(3)]

        start, finish = asyncio.run(WorkerPool().run(workers, time.time() + 0.03))

        self.assertLessEqual(start, finish)
        self.assertGreaterEqual(finish - start, 0.02)
        self.assertEqual(counters.succeeded, len(storage.objects))

    def test_abort_cancels_remaining_workers(self):
        class FlakyStorage(FakeStorage):
            async def put_object(self, key, body, content_md5=None):
                if key.startswith("bad"):
                    await asyncio.sleep(0.01)
                    raise TransportAbort(PUT, key, OSError("reset"))
                return await super().put_object(key, body, content_md5)

        storage = FlakyStorage()
        counters = OperationCounters(PUT)
        workers = [
            PutWorker(0, storage, counters, key_counter("good-")),
            PutWorker(1, storage, counters, key_counter("bad-")),
        ]

        async def run_pool():
            pool = WorkerPool()
            with self.assertRaises(TransportAbort):
                await pool.run(workers, time.time() + 30)
            others = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
            return others, pool

        started = time.time()
        others, pool = asyncio.run(run_pool())

        self.assertLess(time.time() - started, 5)
        self.assertEqual(others, [])
        self.assertFalse(pool.is_running)
        self.assertFalse(workers[0].running)

    def test_delayed_start(self):
        storage = FakeStorage()
        counters = OperationCounters(GET)
        storage.objects = {"k": b""}
        worker = GetWorker(0, storage, counters, lambda: "k")

        async def run_delayed():
            pool = WorkerPool()
            now = time.time()
            pool.start([worker], deadline=now + 0.05, delay=0.03)
            start, _ = await pool.wait()
            return start - now

        self.assertGreaterEqual(asyncio.run(run_delayed()), 0.025)


if __name__ == '__main__':
    unittest.main()
