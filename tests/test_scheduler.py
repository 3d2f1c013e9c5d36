# ========================
# tests/test_scheduler.py
# ========================

import unittest
import io
import os
import sys
import threading
import time

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.ingest.batching import Batch
from src.ingest.errors import IngestionStopped, StoreError
from src.ingest.outcome import OutcomeAggregator, OutcomeStatus
from src.ingest.scheduler import WriteScheduler
from src.ingest.source import FlowControlledSource
from src.ingest.storage import InMemoryRecordStore

WAIT = 5.0


def make_batch(sequence, size=2):
    return Batch(sequence, tuple({'id': f"{sequence}-{i}"} for i in range(size)))


class GatedStore(InMemoryRecordStore):
    """Blocks every insert until released; can fail chosen calls."""

    def __init__(self, fail_calls=()):
        super().__init__()
        self.fail_calls = set(fail_calls)
        self.release = threading.Event()
        self.started = threading.Semaphore(0)
        self.attempts = 0
        self._attempt_lock = threading.Lock()

    def insert_many(self, records):
        with self._attempt_lock:
            self.attempts += 1
            call = self.attempts
        self.started.release()
        self.release.wait(WAIT)
        if call in self.fail_calls:
            raise RuntimeError(f"insert {call} rejected")
        super().insert_many(records)


class TestWriteScheduler(unittest.TestCase):
    """Test bounded concurrent writes and backpressure."""

    def setUp(self):
        self.source = FlowControlledSource(io.BytesIO(b""), name='test')
        self.store = GatedStore()
        self.scheduler = WriteScheduler(self.store, self.source, concurrency_limit=2)

    def tearDown(self):
        self.store.release.set()
        self.scheduler.shutdown()
        self.source.close()

    def _wait_started(self, count):
        for _ in range(count):
            self.assertTrue(self.store.started.acquire(timeout=WAIT))

    def test_dispatch_is_parallel_up_to_the_limit(self):
        self.scheduler.submit(make_batch(1))
        self.scheduler.submit(make_batch(2))
        self._wait_started(2)

        self.assertEqual(self.scheduler.active_count(), 2)
        self.assertEqual(self.store.attempts, 2)

    def test_reaching_the_limit_pauses_the_source(self):
        self.scheduler.submit(make_batch(1))
        self.assertFalse(self.source.is_paused)
        self.scheduler.submit(make_batch(2))
        self.assertTrue(self.source.is_paused)

    def test_submit_blocks_until_a_write_completes(self):
        tasks = [self.scheduler.submit(make_batch(1)), self.scheduler.submit(make_batch(2))]
        third = []
        submitter = threading.Thread(target=lambda: third.append(self.scheduler.submit(make_batch(3))))
        submitter.start()
        submitter.join(0.2)

        self.assertTrue(submitter.is_alive())
        self.assertEqual(self.scheduler.active_count(), 2)

        self.store.release.set()
        submitter.join(WAIT)
        self.assertFalse(submitter.is_alive())
        for task in tasks + third:
            self.assertTrue(task.wait(WAIT))
        self.assertEqual(self.scheduler.active_count(), 0)
        self.assertEqual(self.store.count(), 6)

    def test_completion_resumes_the_source(self):
        task = self.scheduler.submit(make_batch(1))
        self.scheduler.submit(make_batch(2))
        self.assertTrue(self.source.is_paused)

        self.store.release.set()
        self.assertTrue(task.wait(WAIT))
        deadline = time.monotonic() + WAIT
        while self.source.is_paused and time.monotonic() < deadline:
            time.sleep(0.01)
        self.assertFalse(self.source.is_paused)

    def test_failure_halts_and_aborts_the_source(self):
        self.store.fail_calls = {1}
        self.store.release.set()
        task = self.scheduler.submit(make_batch(1))

        self.assertTrue(task.wait(WAIT))
        self.assertIsInstance(task.error, StoreError)
        self.assertEqual(task.error.batch_sequence, 1)
        self.assertIsInstance(task.error.__cause__, RuntimeError)
        self.assertTrue(self.scheduler.halted)
        self.assertTrue(self.source.is_aborted)
        self.assertIs(self.scheduler.failure, task.error)

        with self.assertRaises(IngestionStopped):
            self.scheduler.submit(make_batch(2))
        self.assertEqual(self.store.attempts, 1)

    def test_failure_does_not_cancel_other_writes(self):
        self.store.fail_calls = {1}
        first = self.scheduler.submit(make_batch(1))
        second = self.scheduler.submit(make_batch(2))
        self._wait_started(2)
        self.store.release.set()

        self.assertTrue(first.wait(WAIT))
        self.assertTrue(second.wait(WAIT))
        self.assertIsNotNone(first.error)
        self.assertIsNone(second.error)
        self.assertEqual(self.store.count(), 2)

    def test_failed_write_is_not_retried(self):
        self.store.fail_calls = {1}
        self.store.release.set()
        task = self.scheduler.submit(make_batch(1))
        task.wait(WAIT)
        self.scheduler.shutdown()

        self.assertEqual(self.store.attempts, 1)

    def test_blocked_submit_is_released_by_halt(self):
        self.scheduler.submit(make_batch(1))
        self.scheduler.submit(make_batch(2))
        errors = []

        def submit_third():
            try:
                self.scheduler.submit(make_batch(3))
            except IngestionStopped as e:
                errors.append(e)

        submitter = threading.Thread(target=submit_third)
        submitter.start()
        self.scheduler.halt(ValueError("bad row"))
        submitter.join(WAIT)

        self.assertFalse(submitter.is_alive())
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0].cause, ValueError)

    def test_invalid_limit(self):
        with self.assertRaises(ValueError):
            WriteScheduler(self.store, self.source, concurrency_limit=0)


class ConcurrencyTrackingStore(InMemoryRecordStore):
    def __init__(self, delay=0.01):
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._gauge = threading.Lock()

    def insert_many(self, records):
        with self._gauge:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delay)
            super().insert_many(records)
        finally:
            with self._gauge:
                self.in_flight -= 1


class TestConcurrencyBound(unittest.TestCase):

    def test_active_writes_never_exceed_limit(self):
        store = ConcurrencyTrackingStore()
        source = FlowControlledSource(io.BytesIO(b""))
        scheduler = WriteScheduler(store, source, concurrency_limit=3)
        aggregator = OutcomeAggregator()

        try:
            for sequence in range(1, 31):
                aggregator.track(scheduler.submit(make_batch(sequence)))
                self.assertLessEqual(scheduler.active_count(), 3)
                # Upstream would be parked here by the paused source.
                source.resume()
            outcome = aggregator.settle(WAIT)
        finally:
            scheduler.shutdown()
            source.close()

        self.assertIs(outcome.status, OutcomeStatus.SUCCEEDED)
        self.assertLessEqual(store.max_in_flight, 3)
        self.assertLessEqual(scheduler.peak_active, 3)
        self.assertEqual(store.count(), 60)


if __name__ == '__main__':
    unittest.main()
