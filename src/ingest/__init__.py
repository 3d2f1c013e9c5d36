# ========================
# src/ingest/__init__.py
# ========================

"""
Record Ingestion Package

Core components of the streaming CSV ingestion pipeline:
- source: Flow-controlled byte source (pause / resume / abort)
- parsing: Lazy CSV record parsing
- batching: Fixed-size batch grouping
- scheduler: Bounded concurrent store writes with backpressure
- outcome: Joining writes into one terminal outcome
- orchestrator: Pipeline coordination
- storage: Record store collaborators
"""

from .errors import (
    IngestError,
    SourceDecodeError,
    StoreError,
    IngestionStopped,
    DrainTimeoutError,
)
from .source import FlowControlledSource
from .parsing import RecordParser, Record
from .batching import Batch, Batcher
from .scheduler import WriteScheduler, WriteTask
from .outcome import OutcomeAggregator, OutcomeStatus, PipelineOutcome
from .orchestrator import IngestOptions, IngestionPipeline, IngestionRun, PipelineState, run_ingestion
from .storage import RecordStore, InMemoryRecordStore, SQLiteRecordStore

__all__ = [
    'IngestError',
    'SourceDecodeError',
    'StoreError',
    'IngestionStopped',
    'DrainTimeoutError',
    'FlowControlledSource',
    'RecordParser',
    'Record',
    'Batch',
    'Batcher',
    'WriteScheduler',
    'WriteTask',
    'OutcomeAggregator',
    'OutcomeStatus',
    'PipelineOutcome',
    'IngestOptions',
    'IngestionPipeline',
    'IngestionRun',
    'PipelineState',
    'run_ingestion',
    'RecordStore',
    'InMemoryRecordStore',
    'SQLiteRecordStore',
]

__version__ = "1.0.0"
