"""
Bounded-memory latency statistics.

One StatsCollector per streaming mode ("quick" and "direct"). All four sample
sequences and the request counter are guarded by a single lock.
"""

import math
import logging
import threading
from typing import Iterable, List, Optional

from loro.models.metrics import LatencyStats, ModeStats

logger = logging.getLogger("loro.stats")


def calculate_stats(values: Iterable[float]) -> LatencyStats:
    """avg/min/max/p50/p95 over the finite values; zeros when there are none."""
    data = sorted(v for v in values if math.isfinite(v))
    if not data:
        return LatencyStats()

    n = len(data)
    # 0-based nearest-rank, truncated
    p50_idx = int((n - 1) * 0.5)
    p95_idx = int((n - 1) * 0.95)

    avg = sum(data) / n
    # Float summation can drift a hair outside the sample range
    avg = min(max(avg, data[0]), data[-1])

    return LatencyStats(
        avg=avg,
        min=data[0],
        max=data[-1],
        p50=data[p50_idx],
        p95=data[p95_idx],
    )


class StatsCollector:
    def __init__(self, max_entries: int = 10000, name: str = "stats"):
        self.max_entries = max_entries
        self.name = name
        self._lock = threading.Lock()
        self._first_response: List[float] = []
        self._total: List[float] = []
        self._quick: List[float] = []
        self._large: List[float] = []
        self._request_count = 0

    def record(
        self,
        first_response_s: float,
        total_s: float,
        quick_phase_s: Optional[float] = None,
        large_phase_s: Optional[float] = None,
    ) -> None:
        """Append one completed request."""
        with self._lock:
            self._first_response.append(first_response_s)
            self._total.append(total_s)
            if quick_phase_s is not None:
                self._quick.append(quick_phase_s)
            if large_phase_s is not None:
                self._large.append(large_phase_s)
            self._request_count += 1

            if len(self._first_response) > self.max_entries:
                self._evict()

    def _evict(self) -> None:
        # Trim to 75% of capacity
        keep = self.max_entries * 3 // 4
        removed = len(self._first_response) - keep
        for seq in (self._first_response, self._total, self._quick, self._large):
            excess = len(seq) - keep
            if excess > 0:
                del seq[:excess]
        logger.debug(f"[Stats:{self.name}] Evicted {removed} oldest samples, kept {keep}")

    def snapshot(self) -> ModeStats:
        with self._lock:
            return ModeStats(
                total_requests=self._request_count,
                first_response_latency=calculate_stats(self._first_response),
                total_response_latency=calculate_stats(self._total),
                quick_response_latency=calculate_stats(self._quick),
                large_model_latency=calculate_stats(self._large),
            )

    def reset(self) -> None:
        with self._lock:
            self._first_response.clear()
            self._total.clear()
            self._quick.clear()
            self._large.clear()
            self._request_count = 0

    @property
    def request_count(self) -> int:
        with self._lock:
            return self._request_count

    def avg_first_response(self) -> float:
        with self._lock:
            samples = self._first_response
            return sum(samples) / len(samples) if samples else 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._first_response)
