# ========================
# src/ingest/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Wires parsing, batching, write scheduling and outcome aggregation into one
ingestion run.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from .batching import Batcher, DEFAULT_BATCH_CAPACITY
from .errors import IngestionStopped, SourceDecodeError
from .outcome import OutcomeAggregator, PipelineOutcome
from .parsing import RecordParser
from .scheduler import WriteScheduler, DEFAULT_CONCURRENCY_LIMIT
from .source import FlowControlledSource
from .storage import RecordStore
from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestOptions:
    """Tunables for one ingestion run."""

    batch_capacity: int = DEFAULT_BATCH_CAPACITY
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    drain_timeout: Optional[float] = 300.0
    fields: Optional[Tuple[str, ...]] = None
    encoding: str = 'utf-8-sig'
    delimiter: str = ','

    def __post_init__(self):
        if self.batch_capacity < 1:
            raise ValueError(f"batch_capacity must be at least 1, got {self.batch_capacity}")
        if self.concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {self.concurrency_limit}")
        if self.drain_timeout is not None and self.drain_timeout <= 0:
            raise ValueError(f"drain_timeout must be positive, got {self.drain_timeout}")
        if self.fields is not None:
            object.__setattr__(self, 'fields', tuple(self.fields))

    @classmethod
    def from_config(cls, config: Config, **overrides) -> 'IngestOptions':
        """Build options from a Config, with keyword overrides."""
        values = {
            'batch_capacity': config.BATCH_SIZE,
            'concurrency_limit': config.MAX_CONCURRENT_WRITES,
            'drain_timeout': config.DRAIN_TIMEOUT,
            'fields': tuple(config.RECORD_FIELDS) or None,
            'encoding': config.ENCODING,
            'delimiter': config.DELIMITER,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class IngestionRun:
    """
    One ingestion of one source into one store.

    Moves IDLE -> RUNNING -> SUCCEEDED | FAILED exactly once. The source is
    closed before ``execute`` returns, whatever happens.
    """

    def __init__(self,
                 source: FlowControlledSource,
                 store: RecordStore,
                 options: IngestOptions):
        self.source = source
        self.store = store
        self.options = options
        self.state = PipelineState.IDLE
        self.outcome: Optional[PipelineOutcome] = None
        self.stats: dict = {}

    def execute(self) -> PipelineOutcome:
        """
        Run to a terminal outcome.

        Returns:
            PipelineOutcome: Success, or Failure carrying the first error

        Raises:
            RuntimeError: If this run was already executed
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Ingestion run already {self.state.value}")
        self.state = PipelineState.RUNNING
        logger.info(f"Starting ingestion of '{self.source.name}' "
                    f"(batch size {self.options.batch_capacity}, "
                    f"max concurrent writes {self.options.concurrency_limit})")

        scheduler = WriteScheduler(self.store, self.source, self.options.concurrency_limit)
        aggregator = OutcomeAggregator()
        try:
            with monitor_performance(f"Ingestion of {self.source.name}") as monitor:
                try:
                    self._produce(scheduler, aggregator, monitor)
                except Exception as e:
                    logger.error(f"Unexpected error during ingestion: {e}")
                    scheduler.halt(e)
                    aggregator.settle(self.options.drain_timeout)
                    self.state = PipelineState.FAILED
                    raise

                outcome = aggregator.settle(self.options.drain_timeout)
                monitor.add_checkpoint('settled', outcome.to_dict())
            self.stats = monitor.summary
        finally:
            # Writes abandoned at the drain deadline keep their threads.
            scheduler.shutdown(wait=aggregator.pending_count() == 0)
            self.source.close()

        self._finish(outcome)
        return outcome

    def _produce(self, scheduler: WriteScheduler, aggregator: OutcomeAggregator, monitor) -> None:
        parser = RecordParser(self.source,
                              fields=self.options.fields,
                              encoding=self.options.encoding,
                              delimiter=self.options.delimiter)
        records = parser.records()
        batches = Batcher(self.options.batch_capacity).batches(records)
        try:
            for batch in batches:
                task = scheduler.submit(batch)
                aggregator.track(task)
                monitor.update_progress(len(batch), scheduler.active_count())
            monitor.add_checkpoint('source_exhausted', {'rows_parsed': parser.rows_parsed})
        except IngestionStopped as e:
            logger.warning(f"Ingestion halted, draining {aggregator.pending_count()} in-flight writes: {e.cause}")
            monitor.add_checkpoint('halted', {'rows_parsed': parser.rows_parsed})
        except SourceDecodeError as e:
            logger.error(f"Error processing CSV stream: {e}")
            aggregator.record_source_error(e)
            scheduler.halt(e)
            monitor.add_checkpoint('source_error', {'rows_parsed': parser.rows_parsed})
        finally:
            batches.close()
            records.close()

    def _finish(self, outcome: PipelineOutcome) -> None:
        self.outcome = outcome
        if outcome.succeeded:
            self.state = PipelineState.SUCCEEDED
            logger.info(f"Ingestion of '{self.source.name}' succeeded: "
                        f"{outcome.records_written:,} records in {outcome.batches_submitted} batches")
        else:
            self.state = PipelineState.FAILED
            logger.error(f"Ingestion of '{self.source.name}' failed after "
                         f"{outcome.batches_submitted} batches "
                         f"({outcome.batches_failed} failed): {outcome.error}")


class IngestionPipeline:
    """
    Entry point for callers: ingests CSV streams into a record store.
    Each call to ``run`` is an independent ingestion run.
    """

    def __init__(self, store: RecordStore, options: Optional[IngestOptions] = None):
        """
        Initialize the pipeline.

        Args:
            store (RecordStore): Storage collaborator receiving batches
            options (IngestOptions): Batch size, concurrency and drain settings
        """
        self.store = store
        self.options = options or IngestOptions()
        self.last_run: Optional[IngestionRun] = None

    def run(self, stream: Union[BinaryIO, FlowControlledSource]) -> PipelineOutcome:
        """
        Ingest one binary stream. The stream is closed before returning.

        Args:
            stream: Binary file object or FlowControlledSource

        Returns:
            PipelineOutcome: Terminal outcome of the run
        """
        source = stream if isinstance(stream, FlowControlledSource) else FlowControlledSource(stream)
        self.last_run = IngestionRun(source, self.store, self.options)
        return self.last_run.execute()

    def run_path(self, file_path: Union[str, Path]) -> PipelineOutcome:
        """Ingest a CSV file from disk."""
        return self.run(FlowControlledSource.from_path(file_path))


def run_ingestion(stream: Union[BinaryIO, FlowControlledSource],
                  store: RecordStore,
                  options: Optional[IngestOptions] = None) -> PipelineOutcome:
    """Ingest ``stream`` into ``store`` and return the terminal outcome."""
    return IngestionPipeline(store, options).run(stream)
