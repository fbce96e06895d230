"""
Running statistics.

Incremental means, so no per-request history is kept:

    mean_n = mean_{n-1} + (x_n - mean_{n-1}) / n

`record` is a read-modify-write on shared counters and is serialized
with a lock.
"""

from threading import Lock

from orchestration.state import RunningStats


class StatsAggregator:
    def __init__(self):
        self._lock = Lock()
        self._count = 0
        self._mean_latency = 0.0
        self._mean_tokens = 0.0
        self._success_rate = 0.0
        self._mean_fanout = 0.0

    def record(self, latency: float, tokens: float, fanout: float, success: bool) -> None:
        """Fold one completed request into the running means."""
        with self._lock:
            self._count += 1
            n = self._count
            self._mean_latency += (latency - self._mean_latency) / n
            self._mean_tokens += (tokens - self._mean_tokens) / n
            self._mean_fanout += (fanout - self._mean_fanout) / n
            self._success_rate += ((1.0 if success else 0.0) - self._success_rate) / n

    def snapshot(self) -> RunningStats:
        with self._lock:
            return RunningStats(
                sample_count=self._count,
                mean_latency=self._mean_latency,
                mean_tokens=self._mean_tokens,
                # Clamp float drift so the model bounds always hold
                success_rate=min(max(self._success_rate, 0.0), 1.0),
                mean_fanout=self._mean_fanout,
            )

    def reset(self) -> None:
        """Back to zero samples (tests)."""
        with self._lock:
            self._count = 0
            self._mean_latency = 0.0
            self._mean_tokens = 0.0
            self._success_rate = 0.0
            self._mean_fanout = 0.0
