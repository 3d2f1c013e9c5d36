# ========================
# src/ingest/errors.py
# ========================

"""
Ingestion Errors

Error types raised while reading, batching and storing records.
"""

from typing import Optional


class IngestError(Exception):
    """Base class for all ingestion failures."""


class SourceDecodeError(IngestError):
    """A row could not be decoded, or the source stream failed while reading."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number


class StoreError(IngestError):
    """The storage collaborator rejected one batch."""

    def __init__(self, message: str, batch_sequence: Optional[int] = None):
        super().__init__(message)
        self.batch_sequence = batch_sequence


class IngestionStopped(IngestError):
    """Raised to the producer once the run has been halted."""

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(f"Ingestion stopped: {cause}" if cause else "Ingestion stopped")
        self.cause = cause


class DrainTimeoutError(IngestError):
    """A write did not settle before the drain deadline."""

    def __init__(self, batch_sequence: int, timeout: float):
        super().__init__(f"Batch {batch_sequence} did not settle within {timeout:.1f}s")
        self.batch_sequence = batch_sequence
        self.timeout = timeout
