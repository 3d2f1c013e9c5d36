#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the Record Ingestion Pipeline

Generates a sample people CSV (or takes one from the command line), streams
it into the SQLite record store and prints a summary.
"""

import sys
import logging
from pathlib import Path

from src.ingest import IngestOptions, IngestionPipeline, SQLiteRecordStore
from src.utils import Config, setup_logging, DataGenerator


def main(argv=None) -> int:
    """Main execution function."""
    argv = sys.argv[1:] if argv is None else argv
    config = Config()

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="ingest.log",
        log_dir="logs"
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("RECORD INGESTION PIPELINE - MAIN EXECUTION")
    logger.info("=" * 60)

    invalid = [name for name, ok in config.validate_config().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration: {', '.join(invalid)}")
        return 1

    config.ensure_directories()

    # Step 1: Pick or generate the input
    if argv:
        input_file = argv[0]
        generation_stats = None
    else:
        input_file = config.DEFAULT_INPUT_FILE
        logger.info("Step 1: Generating sample data...")
        generation_stats = DataGenerator(seed=42).generate_dataset(
            file_path=input_file,
            num_rows=config.DEFAULT_SAMPLE_ROWS
        )

    if not Path(input_file).is_file():
        logger.error(f"Input file does not exist: {input_file}")
        return 1

    # Step 2: Ingest
    logger.info("Step 2: Ingesting records...")
    store = SQLiteRecordStore(config.DB_PATH)
    pipeline = IngestionPipeline(store, IngestOptions.from_config(config))
    outcome = pipeline.run_path(input_file)

    # Step 3: Summary
    _print_execution_summary(input_file, outcome, pipeline.last_run.stats, generation_stats)
    if not outcome.succeeded:
        logger.error(f"Ingestion failed: {outcome.error}")
        return 1

    logger.info("Most recent records:")
    for record in store.list_recent(config.RECENT_RECORDS_LIMIT):
        logger.info(f"  {record}")
    return 0


def _print_execution_summary(input_file: str, outcome, stats: dict, generation_stats) -> None:
    """Print final execution summary."""
    print("\n" + "=" * 70)
    print("INGESTION SUMMARY")
    print("=" * 70)

    if generation_stats:
        print(f"Sample rows generated: {generation_stats['total_rows']:,}")

    print(f"Input file: {input_file}")
    print(f"Outcome: {outcome.status.value}")
    print(f"Batches submitted: {outcome.batches_submitted:,}")
    print(f"Batches failed: {outcome.batches_failed:,}")
    print(f"Records written: {outcome.records_written:,}")
    if stats:
        print(f"Elapsed: {stats['total_processing_time_seconds']:.2f}s")
        print(f"Throughput: {stats['average_throughput_records_per_second']:.0f} records/second")
        print(f"Peak writes in flight: {stats['peak_active_writes']}")
    if outcome.error:
        print(f"Error: {outcome.error}")

    print("=" * 70)


if __name__ == '__main__':
    sys.exit(main())
