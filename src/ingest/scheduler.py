# ========================
# src/ingest/scheduler.py
# ========================

"""
Write Scheduler Module

Dispatches batches to the record store on a bounded pool of writer threads
and pushes back on the source whenever every writer is busy.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .batching import Batch
from .errors import IngestionStopped, StoreError
from .source import FlowControlledSource
from .storage import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 5


class WriteTask:
    """Handle for one in-flight ``insert_many`` call covering one batch."""

    def __init__(self, index: int, batch: Batch):
        self.index = index
        self.batch = batch
        self.error: Optional[StoreError] = None
        self._settled = threading.Event()

    def done(self) -> bool:
        return self._settled.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the write settles. Returns False on timeout."""
        return self._settled.wait(timeout)

    @property
    def succeeded(self) -> bool:
        return self.done() and self.error is None

    def _settle(self, error: Optional[StoreError]) -> None:
        self.error = error
        self._settled.set()

    def __repr__(self) -> str:
        state = 'pending' if not self.done() else ('failed' if self.error else 'ok')
        return f"WriteTask(index={self.index}, records={len(self.batch)}, {state})"


class WriteScheduler:
    """
    Bounds concurrent store writes and applies backpressure to the source.

    At most ``concurrency_limit`` writes are unresolved at any time. When
    the limit is reached the source is paused; it is resumed as soon as a
    write completes and frees a slot. The first failed write halts the run:
    the source is aborted and no further batch is admitted, while writes
    already dispatched are left to finish.
    """

    def __init__(self,
                 store: RecordStore,
                 source: FlowControlledSource,
                 concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT):
        if concurrency_limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {concurrency_limit}")
        self.store = store
        self.source = source
        self.concurrency_limit = concurrency_limit

        self._executor = ThreadPoolExecutor(max_workers=concurrency_limit,
                                            thread_name_prefix='ingest-writer')
        self._capacity = threading.Condition()
        self._active = 0
        self._submitted = 0
        self._halted = False
        self._failure: Optional[BaseException] = None
        self.peak_active = 0

    def active_count(self) -> int:
        """Number of writes dispatched but not yet settled."""
        with self._capacity:
            return self._active

    @property
    def halted(self) -> bool:
        with self._capacity:
            return self._halted

    @property
    def failure(self) -> Optional[BaseException]:
        """The cause that halted the run, if any."""
        with self._capacity:
            return self._failure

    def submit(self, batch: Batch) -> WriteTask:
        """
        Admit a batch and dispatch its write immediately.

        Blocks while the concurrency limit is reached.

        Raises:
            IngestionStopped: If the run was halted before the batch could
                be admitted. The batch is not written.
        """
        with self._capacity:
            if self._active >= self.concurrency_limit and not self._halted:
                logger.debug(f"{self._active} writes in flight; pausing source before batch {batch.sequence}")
                self.source.pause()
            while self._active >= self.concurrency_limit and not self._halted:
                self._capacity.wait()
            if self._halted:
                raise IngestionStopped(self._failure)

            self._submitted += 1
            task = WriteTask(self._submitted, batch)
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)
            if self._active >= self.concurrency_limit:
                # Park the producer before it assembles another batch.
                self.source.pause()

        logger.debug(f"Dispatching batch {batch.sequence} ({len(batch)} records)")
        self._executor.submit(self._write, task)
        return task

    def halt(self, cause: BaseException) -> None:
        """Stop admitting batches and abort the source."""
        with self._capacity:
            if self._failure is None:
                self._failure = cause
            if self._halted:
                return
            self._halted = True
            self.source.abort(cause)
            self._capacity.notify_all()

    def shutdown(self, wait: bool = True) -> None:
        """Release the writer threads."""
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _write(self, task: WriteTask) -> None:
        error = None
        try:
            self.store.insert_many(task.batch.records)
        except StoreError as e:
            error = e
            if error.batch_sequence is None:
                error.batch_sequence = task.batch.sequence
        except Exception as e:
            error = StoreError(f"Batch {task.batch.sequence} insert failed: {e}",
                               batch_sequence=task.batch.sequence)
            error.__cause__ = e
        self._on_settled(task, error)

    def _on_settled(self, task: WriteTask, error: Optional[StoreError]) -> None:
        with self._capacity:
            self._active -= 1
            if error is not None:
                logger.error(f"Error saving batch {task.batch.sequence} to store: {error}")
                if self._failure is None:
                    self._failure = error
                if not self._halted:
                    self._halted = True
                    self.source.abort(error)
            elif (not self._halted and self.source.is_paused
                  and self._active < self.concurrency_limit):
                self.source.resume()
            self._capacity.notify_all()
        task._settle(error)
        if error is None:
            logger.debug(f"Batch {task.batch.sequence} saved ({len(task.batch)} records)")
