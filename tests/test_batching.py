# ========================
# tests/test_batching.py
# ========================

import unittest
import os
import sys

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.ingest.batching import Batch, Batcher
from src.ingest.errors import SourceDecodeError


def make_records(count):
    return [{'id': str(i)} for i in range(count)]


class TestBatcher(unittest.TestCase):
    """Test fixed-size batch grouping."""

    def test_partition_preserves_order_and_completeness(self):
        """Concatenating the batches gives back the input sequence."""
        for count in (0, 1, 9, 10, 11, 25, 100):
            for capacity in (1, 3, 10, 1000):
                records = make_records(count)
                batches = list(Batcher(capacity).batches(records))
                flattened = [record for batch in batches for record in batch.records]
                self.assertEqual(flattened, records, f"count={count} capacity={capacity}")

    def test_only_last_batch_may_be_short(self):
        batches = list(Batcher(4).batches(make_records(18)))

        self.assertEqual([len(b) for b in batches], [4, 4, 4, 4, 2])
        for batch in batches:
            self.assertGreater(len(batch), 0)
            self.assertLessEqual(len(batch), 4)

    def test_2500_records_make_three_batches(self):
        batches = list(Batcher(1000).batches(make_records(2500)))
        self.assertEqual([len(b) for b in batches], [1000, 1000, 500])
        self.assertEqual([b.sequence for b in batches], [1, 2, 3])

    def test_exact_multiple_has_no_trailing_batch(self):
        batches = list(Batcher(5).batches(make_records(10)))
        self.assertEqual([len(b) for b in batches], [5, 5])

    def test_empty_input_emits_nothing(self):
        self.assertEqual(list(Batcher(10).batches([])), [])

    def test_deterministic(self):
        records = make_records(37)
        first = list(Batcher(6).batches(records))
        second = list(Batcher(6).batches(records))
        self.assertEqual(first, second)

    def test_batches_are_independent_values(self):
        """Each flush produces its own immutable tuple."""
        batches = list(Batcher(2).batches(make_records(4)))

        self.assertIsInstance(batches[0].records, tuple)
        self.assertIsNot(batches[0].records, batches[1].records)
        with self.assertRaises(AttributeError):
            batches[0].records = ()

    def test_lazy_consumption(self):
        """Records are pulled only as batches are requested."""
        pulled = []

        def source():
            for record in make_records(10):
                pulled.append(record)
                yield record

        batches = Batcher(3).batches(source())
        next(batches)
        self.assertEqual(len(pulled), 3)

    def test_error_discards_partial_batch(self):
        """If the record source fails, the buffered remainder is never flushed."""
        def failing_source():
            yield from make_records(7)
            raise SourceDecodeError("bad row", line_number=9)

        emitted = []
        with self.assertRaises(SourceDecodeError):
            for batch in Batcher(5).batches(failing_source()):
                emitted.append(batch)

        self.assertEqual([len(b) for b in emitted], [5])

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            Batcher(0)

    def test_batch_len(self):
        self.assertEqual(len(Batch(1, ({'id': '1'}, {'id': '2'}))), 2)


if __name__ == '__main__':
    unittest.main()
