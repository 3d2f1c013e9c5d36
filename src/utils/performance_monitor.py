# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Tracks throughput, write concurrency and memory for an ingestion run.
"""

import time
import os
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional

import psutil

logger = logging.getLogger(__name__)


class IngestionMonitor:
    """
    Performance monitor for one ingestion run.
    Tracks records submitted, batches dispatched, write concurrency and memory.
    """

    def __init__(self, name: str = "Ingestion", log_interval: int = 100):
        """
        Initialize performance monitor.

        Args:
            name (str): Name for this monitoring session
            log_interval (int): Log progress every N batches
        """
        self.name = name
        self.log_interval = log_interval
        self.start_time = None
        self.end_time = None
        self.peak_memory_mb = 0.0
        self.records_submitted = 0
        self.batches_submitted = 0
        self.peak_active_writes = 0
        self.checkpoints = []
        self.summary: Dict[str, Any] = {}

        logger.debug(f"IngestionMonitor initialized: {name}")

    def start_monitoring(self) -> None:
        """Start performance monitoring."""
        self.start_time = time.time()
        self.peak_memory_mb = self._get_memory_usage_mb()

        logger.info(f"{self.name} - Performance monitoring started")
        logger.debug(f"Initial memory usage: {self.peak_memory_mb:.2f} MB")

    def update_progress(self, records_in_batch: int, active_writes: int = 0) -> None:
        """
        Record one dispatched batch.

        Args:
            records_in_batch (int): Number of records in the batch
            active_writes (int): Writes in flight right after dispatch
        """
        self.records_submitted += records_in_batch
        self.batches_submitted += 1
        self.peak_active_writes = max(self.peak_active_writes, active_writes)
        current_memory = self._get_memory_usage_mb()
        self.peak_memory_mb = max(self.peak_memory_mb, current_memory)

        if self.batches_submitted % self.log_interval == 0:
            self._log_progress(current_memory)

    def add_checkpoint(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Add a performance checkpoint.

        Args:
            name (str): Checkpoint name
            metadata (dict): Optional metadata to store
        """
        checkpoint = {
            'name': name,
            'timestamp': time.time(),
            'memory_mb': self._get_memory_usage_mb(),
            'records_submitted': self.records_submitted,
            'batches_submitted': self.batches_submitted,
            'metadata': metadata or {}
        }
        self.checkpoints.append(checkpoint)
        logger.debug(f"Checkpoint '{name}': {checkpoint}")

    def _log_progress(self, current_memory: float) -> None:
        if self.start_time:
            elapsed = time.time() - self.start_time
            throughput = self.records_submitted / elapsed if elapsed > 0 else 0

            logger.info(
                f"{self.name} - Progress: {self.batches_submitted} batches, "
                f"{self.records_submitted:,} records, "
                f"{throughput:.0f} records/sec, "
                f"Memory: {current_memory:.2f} MB"
            )

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return performance summary.

        Returns:
            dict: Performance statistics
        """
        self.end_time = time.time()
        total_time = self.end_time - self.start_time if self.start_time else 0
        throughput = self.records_submitted / total_time if total_time > 0 else 0

        summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'records_submitted': self.records_submitted,
            'batches_submitted': self.batches_submitted,
            'peak_active_writes': self.peak_active_writes,
            'average_throughput_records_per_second': throughput,
            'peak_memory_usage_mb': self.peak_memory_mb,
            'checkpoints': self.checkpoints
        }

        self.summary = summary
        self._log_summary(summary)
        return summary

    def _log_summary(self, summary: Dict[str, Any]) -> None:
        logger.info(
            f"{summary['name']} summary: "
            f"{summary['records_submitted']:,} records in {summary['batches_submitted']:,} batches, "
            f"{summary['total_processing_time_seconds']:.2f}s, "
            f"{summary['average_throughput_records_per_second']:.0f} records/sec, "
            f"peak writes in flight {summary['peak_active_writes']}, "
            f"peak memory {summary['peak_memory_usage_mb']:.2f} MB"
        )

    def _get_memory_usage_mb(self) -> float:
        """Get current memory usage in MB."""
        try:
            memory_bytes = psutil.Process(os.getpid()).memory_info().rss
        except psutil.Error as e:
            logger.debug(f"Could not get memory usage: {e}")
            return 0.0
        return memory_bytes / (1024 * 1024)


@contextmanager
def monitor_performance(name: str = "Ingestion"):
    """
    Context manager for easy performance monitoring.

    Args:
        name (str): Name for this monitoring session

    Yields:
        IngestionMonitor: Monitor instance
    """
    monitor = IngestionMonitor(name)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.stop_monitoring()
