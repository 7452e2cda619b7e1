# ========================
# src/ev_adoption/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Tracks elapsed time, rows handled and peak memory for a pipeline run, with
a named checkpoint per stage.
"""

import os
import time
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional

import psutil

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Performance monitoring utility for the pipeline.
    Tracks memory usage, processing time and throughput.
    """

    def __init__(self, name: str = "Pipeline"):
        """
        Initialize performance monitor.

        Args:
            name (str): Name for this monitoring session
        """
        self.name = name
        self.start_time = None
        self.end_time = None
        self.peak_memory_mb = 0.0
        self.records_processed = 0
        self.stages_completed = 0
        self.checkpoints = []
        self._process = psutil.Process(os.getpid())
        self._last_checkpoint_time = None
        self.summary: Optional[Dict[str, Any]] = None

        logger.debug(f"PerformanceMonitor initialized: {name}")

    def start_monitoring(self) -> None:
        """Start performance monitoring."""
        self.start_time = time.perf_counter()
        self._last_checkpoint_time = self.start_time
        self.peak_memory_mb = self._get_memory_usage_mb()

        logger.info(f"{self.name} - Performance monitoring started")
        logger.info(f"Initial memory usage: {self.peak_memory_mb:.2f} MB")

    def update_progress(self, records: int) -> None:
        """
        Update progress tracking.

        Args:
            records (int): Number of rows handled since the last update
        """
        self.records_processed += records
        self.peak_memory_mb = max(self.peak_memory_mb, self._get_memory_usage_mb())

    def add_checkpoint(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Record the end of a stage.

        Args:
            name (str): Stage name
            metadata (dict): Optional metadata to store
        """
        now = time.perf_counter()
        memory_mb = self._get_memory_usage_mb()
        self.peak_memory_mb = max(self.peak_memory_mb, memory_mb)
        self.stages_completed += 1
        checkpoint = {
            'name': name,
            'stage_seconds': now - (self._last_checkpoint_time or now),
            'memory_mb': memory_mb,
            'records_processed': self.records_processed,
            'metadata': metadata or {}
        }
        self._last_checkpoint_time = now
        self.checkpoints.append(checkpoint)
        logger.debug(f"Checkpoint '{name}': {checkpoint}")

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return performance summary.

        Returns:
            dict: Performance statistics
        """
        self.end_time = time.perf_counter()
        total_time = self.end_time - self.start_time if self.start_time else 0
        throughput = self.records_processed / total_time if total_time > 0 else 0

        summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'records_processed': self.records_processed,
            'stages_completed': self.stages_completed,
            'average_throughput_records_per_second': throughput,
            'peak_memory_usage_mb': self.peak_memory_mb,
            'checkpoints': self.checkpoints
        }

        logger.info(
            f"{self.name} - {total_time:.2f}s, {self.records_processed:,} records, "
            f"{throughput:.0f} records/sec, peak memory {self.peak_memory_mb:.2f} MB"
        )
        return summary

    def _get_memory_usage_mb(self) -> float:
        """Get current resident memory in MB."""
        try:
            return self._process.memory_info().rss / (1024 * 1024)
        except psutil.Error as e:
            logger.debug(f"Could not get memory usage: {e}")
            return self.peak_memory_mb


@contextmanager
def monitor_performance(name: str = "Pipeline"):
    """
    Context manager for easy performance monitoring.

    Args:
        name (str): Name for this monitoring session

    Yields:
        PerformanceMonitor: Monitor instance; its summary is stored on
        the `summary` attribute when the block exits
    """
    monitor = PerformanceMonitor(name)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.summary = monitor.stop_monitoring()


def get_system_stats() -> Dict[str, Any]:
    """Current system memory and CPU figures, reported by the health endpoint."""
    memory = psutil.virtual_memory()
    return {
        'cpu_count': psutil.cpu_count(),
        'memory_total_gb': memory.total / (1024 ** 3),
        'memory_available_gb': memory.available / (1024 ** 3),
        'memory_used_percent': memory.percent,
    }
