# src/mlcore/utils/metrics.py
"""
Inference performance metrics.

Tracks a rolling window of inference latencies per model and derives the
average/min/max used by the registry and external dashboards.
"""

from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np

DEFAULT_WINDOW_SIZE = 100


@dataclass
class PerformanceMetrics:
    """Snapshot of a model's inference performance."""
    average_inference_ms: float = 0.0
    min_inference_ms: float = float('inf')
    max_inference_ms: float = 0.0
    total_inferences: int = 0
    memory_usage_mb: float = 0.0
    device_utilization: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)


class PerformanceTracker:
    """
    Rolling-window latency tracker.

    Keeps the last `window_size` latencies (oldest dropped first) and
    recomputes average/min/max from the window after every sample.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        self.window_size = window_size
        self.latencies = deque(maxlen=window_size)
        self.total_inferences = 0
        self._metrics = PerformanceMetrics()

    def update(self, inference_time_ms: float,
               memory_usage_mb: Optional[float] = None) -> PerformanceMetrics:
        """
        Record one completed inference.

        Args:
            inference_time_ms: Backend latency of the inference
            memory_usage_mb: Live memory sample from the backend

        Returns:
            Updated metrics snapshot
        """
        self.latencies.append(float(inference_time_ms))
        self.total_inferences += 1

        window = np.fromiter(self.latencies, dtype=np.float64)
        self._metrics = PerformanceMetrics(
            average_inference_ms=float(window.mean()),
            min_inference_ms=float(window.min()),
            max_inference_ms=float(window.max()),
            total_inferences=self.total_inferences,
            memory_usage_mb=float(memory_usage_mb) if memory_usage_mb is not None
            else self._metrics.memory_usage_mb,
            device_utilization=self._metrics.device_utilization,
        )
        return self.snapshot()

    def snapshot(self) -> PerformanceMetrics:
        """Return a copy of the current metrics."""
        return PerformanceMetrics(**self._metrics.to_dict())

    def summary(self) -> Dict[str, Any]:
        """Extended statistics over the current window."""
        if not self.latencies:
            return {}

        times = np.fromiter(self.latencies, dtype=np.float64)
        mean = float(times.mean())
        return {
            'mean': mean,
            'std': float(times.std()),
            'min': float(times.min()),
            'max': float(times.max()),
            'p95': float(np.percentile(times, 95)),
            'p99': float(np.percentile(times, 99)),
            'latest': float(times[-1]),
            'throughput_fps': 1000 / mean if mean > 0 else 0.0,
            'total_inferences': self.total_inferences,
        }

    def reset(self):
        """Reset performance statistics."""
        self.latencies.clear()
        self.total_inferences = 0
        self._metrics = PerformanceMetrics()
