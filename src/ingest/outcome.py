# ========================
# src/ingest/outcome.py
# ========================

"""
Outcome Aggregation Module

Joins every write of a run and reduces the results to one terminal outcome.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .errors import DrainTimeoutError
from .scheduler import WriteTask

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal result of one ingestion run."""

    status: OutcomeStatus
    error: Optional[BaseException] = None
    batches_submitted: int = 0
    batches_failed: int = 0
    records_written: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'error': str(self.error) if self.error else None,
            'batches_submitted': self.batches_submitted,
            'batches_failed': self.batches_failed,
            'records_written': self.records_written,
        }


class OutcomeAggregator:
    """
    Collects write tasks in submission order and settles them all.

    The reported cause is the earliest failure by position in the stream:
    writes rank by submission order and a source error ranks after every
    batch that was submitted before it. The order in which writes happen to
    complete plays no part.
    """

    def __init__(self):
        self._tasks: List[WriteTask] = []
        self._source_error: Optional[BaseException] = None
        self._source_error_position: Optional[int] = None

    def track(self, task: WriteTask) -> None:
        self._tasks.append(task)

    def record_source_error(self, error: BaseException) -> None:
        if self._source_error is None:
            self._source_error = error
            self._source_error_position = len(self._tasks)

    def pending_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def settle(self, timeout: Optional[float] = None) -> PipelineOutcome:
        """
        Wait for every tracked write, then compute the outcome.

        Failures do not cut the wait short. With a ``timeout``, writes still
        unresolved at the deadline count as failed with DrainTimeoutError.

        Args:
            timeout (float): Overall drain deadline in seconds, or None

        Returns:
            PipelineOutcome: Success iff no write failed and the source was
            read to the end.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        errors: List[Optional[BaseException]] = []

        for task in self._tasks:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if task.wait(remaining):
                errors.append(task.error)
            else:
                logger.warning(f"Batch {task.batch.sequence} still in flight after drain deadline")
                errors.append(DrainTimeoutError(task.batch.sequence, timeout))

        return self._reduce(errors)

    def _reduce(self, errors: List[Optional[BaseException]]) -> PipelineOutcome:
        first_error = None
        for position, error in enumerate(errors):
            if position == self._source_error_position:
                first_error = self._source_error
                break
            if error is not None:
                first_error = error
                break
        else:
            if self._source_error is not None:
                first_error = self._source_error

        failed = sum(1 for error in errors if error is not None)
        written = sum(len(task.batch) for task, error in zip(self._tasks, errors) if error is None)

        if first_error is None:
            return PipelineOutcome(OutcomeStatus.SUCCEEDED,
                                   batches_submitted=len(self._tasks),
                                   records_written=written)
        return PipelineOutcome(OutcomeStatus.FAILED,
                               error=first_error,
                               batches_submitted=len(self._tasks),
                               batches_failed=failed,
                               records_written=written)
