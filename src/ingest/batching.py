# ========================
# src/ingest/batching.py
# ========================

"""
Batching Module

Groups a record stream into fixed-size, immutable batches.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from .parsing import Record

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CAPACITY = 1000


@dataclass(frozen=True)
class Batch:
    """One storage-write unit: a 1-based sequence number and its records."""

    sequence: int
    records: Tuple[Record, ...]

    def __len__(self) -> int:
        return len(self.records)


class Batcher:
    """
    Accumulates records into batches of exactly ``capacity`` records. The
    last batch holds whatever remains and is skipped when nothing remains.
    """

    def __init__(self, capacity: int = DEFAULT_BATCH_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Batch capacity must be at least 1, got {capacity}")
        self.capacity = capacity

    def batches(self, records: Iterable[Record]) -> Iterator[Batch]:
        """
        Yield batches in input order.

        If ``records`` raises, the partially filled buffer is dropped and the
        error propagates; a partial batch is only flushed at end-of-stream.

        Args:
            records: Record iterable to consume

        Yields:
            Batch: The next full batch, or the final partial one
        """
        sequence = 0
        pending = []

        for record in records:
            pending.append(record)
            if len(pending) == self.capacity:
                sequence += 1
                logger.debug(f"Batch {sequence} full with {len(pending)} records")
                yield Batch(sequence, tuple(pending))
                pending = []

        if pending:
            sequence += 1
            logger.info(f"Flushing final batch {sequence} with {len(pending)} records")
            yield Batch(sequence, tuple(pending))
