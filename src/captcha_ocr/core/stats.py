"""
Solver Statistics
=================

Running counters shared by every concurrent solve call. All updates go
through one lock; readers only ever get a copy.
"""

import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass
class SolverStats:
    """Snapshot of the solver counters."""
    total_attempts: int = 0
    successful_decodes: int = 0
    failures: int = 0
    # Mean over successful decodes only
    average_confidence: float = 0.0
    # Timing aggregates over all attempts, failures included
    average_solve_time_ms: float = 0.0
    min_solve_time_ms: float = 0.0
    max_solve_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAttempts": self.total_attempts,
            "successfulDecodes": self.successful_decodes,
            "failures": self.failures,
            "averageConfidence": self.average_confidence,
            "averageSolveTimeMs": self.average_solve_time_ms,
            "minSolveTimeMs": self.min_solve_time_ms,
            "maxSolveTimeMs": self.max_solve_time_ms,
        }


class StatsAggregator:
    """
    Thread-safe running statistics.

    Example:
        stats = StatsAggregator()
        stats.record(12.5, confidence=0.97)   # success
        stats.record(3.1)                     # failure
        print(stats.snapshot().failures)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = SolverStats()

    def record(self, elapsed_ms: float, confidence: Optional[float] = None) -> None:
        """
        Record one solve attempt.

        Args:
            elapsed_ms: Time from call entry to result production
            confidence: Confidence of a successful decode; None marks a failure
        """
        elapsed_ms = max(0.0, float(elapsed_ms))

        with self._lock:
            s = self._stats
            s.total_attempts += 1
            n = s.total_attempts

            s.average_solve_time_ms = (s.average_solve_time_ms * (n - 1) + elapsed_ms) / n
            if n == 1:
                s.min_solve_time_ms = elapsed_ms
                s.max_solve_time_ms = elapsed_ms
            else:
                s.min_solve_time_ms = min(s.min_solve_time_ms, elapsed_ms)
                s.max_solve_time_ms = max(s.max_solve_time_ms, elapsed_ms)

            if confidence is None:
                s.failures += 1
            else:
                s.successful_decodes += 1
                k = s.successful_decodes
                s.average_confidence = (s.average_confidence * (k - 1) + confidence) / k

    def snapshot(self) -> SolverStats:
        """Return a copy of the current counters."""
        with self._lock:
            return replace(self._stats)
