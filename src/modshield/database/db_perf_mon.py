"""
Performance monitoring for database operations.

Every store operation runs inside :meth:`DatabasePerformanceMonitor.timed`,
which records its duration under the operation name and logs a warning when it
exceeds the slow-query threshold.
"""

import time
from contextlib import contextmanager
from typing import Dict, Iterator

from modshield.util.logger import get_logger

logger = get_logger("database_perf_mon")


class DatabasePerformanceMonitor:
    """
    Per-operation timing statistics: count, total, min and max duration.
    """

    def __init__(self, slow_query_threshold_ms: float = 100.0):
        """
        Args:
            slow_query_threshold_ms: Operations slower than this are logged
        """
        self._query_stats: Dict[str, Dict[str, float]] = {}
        self._slow_query_threshold = slow_query_threshold_ms / 1000.0

    def track(self, query_name: str, duration: float) -> None:
        """
        Record one execution of ``query_name`` lasting ``duration`` seconds.
        """
        stats = self._query_stats.setdefault(
            query_name,
            {"count": 0, "total_time": 0.0, "min_time": float("inf"), "max_time": 0.0},
        )
        stats["count"] += 1
        stats["total_time"] += duration
        stats["min_time"] = min(stats["min_time"], duration)
        stats["max_time"] = max(stats["max_time"], duration)

        if duration > self._slow_query_threshold:
            logger.warning("[PERFORMANCE] Slow query: %s took %.2fms", query_name, duration * 1000)

    @contextmanager
    def timed(self, query_name: str) -> Iterator[None]:
        """Time the enclosed block, recording it even when it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.track(query_name, time.perf_counter() - start)

    def get_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Returns:
            Mapping of operation name to count, total, average, min and max time
        """
        result = {}
        for query_name, stats in self._query_stats.items():
            result[query_name] = {
                "count": stats["count"],
                "total_time": stats["total_time"],
                "avg_time": stats["total_time"] / stats["count"] if stats["count"] else 0,
                "min_time": stats["min_time"] if stats["min_time"] != float("inf") else 0,
                "max_time": stats["max_time"],
            }
        return result

    def reset(self) -> None:
        """Reset all performance statistics."""
        self._query_stats.clear()
        logger.info("[PERFORMANCE] Statistics reset")
