# ========================
# src/ingest/parsing.py
# ========================

"""
Record Parsing Module

Decodes a CSV byte stream into a lazy sequence of read-only records.
"""

import csv
import io
import logging
import sys
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Sequence

from .errors import IngestionStopped, SourceDecodeError
from .source import FlowControlledSource

logger = logging.getLogger(__name__)

# Fields are passed through verbatim, however long.
csv.field_size_limit(sys.maxsize)

Record = Mapping[str, Optional[str]]


class RecordParser:
    """
    A streaming CSV parser. Rows are decoded one at a time so that files
    far larger than memory can be ingested, and every row passes through
    the source's flow control before it is handed on.
    """

    def __init__(self,
                 source: FlowControlledSource,
                 fields: Optional[Sequence[str]] = None,
                 encoding: str = 'utf-8-sig',
                 delimiter: str = ','):
        """
        Initialize the parser.

        Args:
            source (FlowControlledSource): Byte source to read from
            fields (list): Optional projection; missing columns map to None
            encoding (str): Text encoding of the stream
            delimiter (str): Field delimiter
        """
        self.source = source
        self.fields = list(fields) if fields else None
        self.encoding = encoding
        self.delimiter = delimiter
        self.header: List[str] = []
        self.rows_parsed = 0

    def records(self) -> Iterator[Record]:
        """
        A generator that yields one record per data row, in input order.

        Yields:
            Mapping[str, str]: A read-only mapping of field name to value.

        Raises:
            SourceDecodeError: On a malformed row or a stream read failure.
            IngestionStopped: When the source is aborted mid-read.
        """
        buffered = io.BufferedReader(self.source)
        text = io.TextIOWrapper(buffered, encoding=self.encoding, newline='')
        reader = csv.reader(text, delimiter=self.delimiter)
        try:
            yield from self._read_rows(reader)
        finally:
            # Leave closing to whoever owns the source.
            if not self.source.closed:
                text.detach()
                buffered.detach()

    def _read_rows(self, reader) -> Iterator[Record]:
        try:
            self.header = next(reader, None) or []
            if not self.header:
                logger.info(f"Source {self.source.name} is empty")
                return
            logger.info(f"CSV header: {self.header}")

            for row in reader:
                if not row:
                    continue
                if len(row) != len(self.header):
                    raise SourceDecodeError(
                        f"Line {reader.line_num}: expected {len(self.header)} columns, "
                        f"got {len(row)}",
                        line_number=reader.line_num,
                    )
                self.source.wait_until_readable()
                self.rows_parsed += 1
                yield self._to_record(row)

        except (SourceDecodeError, IngestionStopped):
            raise
        except UnicodeDecodeError as e:
            raise SourceDecodeError(
                f"Could not decode row after line {reader.line_num}: {e}",
                line_number=reader.line_num,
            ) from e
        except csv.Error as e:
            raise SourceDecodeError(f"Malformed CSV at line {reader.line_num}: {e}",
                                    line_number=reader.line_num) from e
        except OSError as e:
            raise SourceDecodeError(f"Error reading source {self.source.name}: {e}") from e

        logger.info(f"Total rows parsed: {self.rows_parsed}")

    def _to_record(self, row: List[str]) -> Record:
        values = dict(zip(self.header, row))
        if self.fields is not None:
            values = {field: values.get(field) for field in self.fields}
        return MappingProxyType(values)
