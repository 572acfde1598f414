"""
Convergence detection for the healing loop.

Tracks the error count after every attempt and derives a trend:
``oscillating`` when the last four counts alternate direction,
``stagnating`` when the last three are flat or two attempts passed without
improvement, otherwise ``improving`` or ``degrading`` by monotonic
comparison of the last three. The session has converged when the latest
count is zero.
"""

import logging
from typing import Iterable, List, Set

from ..core.models import (
    ConvergenceInfo,
    ConvergenceTrend,
    ErrorRecord,
    ProgressAnalysis,
    ProgressRecommendation,
)
from .circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


class ConvergenceDetector:
    """Error-count history of one healing session."""

    def __init__(self):
        self._error_counts: List[int] = []
        self._fingerprints: List[Set[str]] = []
        self._last_improvement = -1
        self._stagnation_count = 0

    def record_attempt(self, errors: Iterable[ErrorRecord]) -> None:
        errors = list(errors)
        self._error_counts.append(len(errors))
        self._fingerprints.append({e.fingerprint for e in errors})
        self._update_progress(len(self._error_counts) - 1)

    def _update_progress(self, index: int) -> None:
        if index < 1:
            return
        if self._error_counts[index] < self._error_counts[index - 1]:
            self._last_improvement = index
            self._stagnation_count = 0
        else:
            self._stagnation_count += 1

    def get_info(self) -> ConvergenceInfo:
        return ConvergenceInfo(
            error_counts=list(self._error_counts),
            error_fingerprints=[set(s) for s in self._fingerprints],
            last_improvement=self._last_improvement,
            stagnation_count=self._stagnation_count,
            trend=self.detect_trend(),
            converged=self.is_converged(),
        )

    def is_converged(self) -> bool:
        return bool(self._error_counts) and self._error_counts[-1] == 0

    def detect_trend(self) -> ConvergenceTrend:
        """Trend of the recent error counts."""
        if len(self._error_counts) < 2:
            return ConvergenceTrend.STAGNATING

        if self._is_oscillating():
            return ConvergenceTrend.OSCILLATING

        recent = self._error_counts[-3:]
        pairs = list(zip(recent, recent[1:]))
        if all(a == b for a, b in pairs) or self._stagnation_count >= 2:
            return ConvergenceTrend.STAGNATING
        if all(b <= a for a, b in pairs):
            return ConvergenceTrend.IMPROVING
        if all(b >= a for a, b in pairs):
            return ConvergenceTrend.DEGRADING
        return ConvergenceTrend.STAGNATING

    def _is_oscillating(self) -> bool:
        if len(self._error_counts) < 4:
            return False
        a, b, c, d = self._error_counts[-4:]
        first, second, third = _sign(b - a), _sign(c - b), _sign(d - c)
        return first != 0 and first == -second and second == -third

    def get_improvement_percentage(self) -> int:
        """Percent reduction from the first to the latest error count."""
        if len(self._error_counts) < 2:
            return 0
        first, last = self._error_counts[0], self._error_counts[-1]
        if first == 0:
            return 100 if last == 0 else 0
        return round((first - last) / first * 100)

    def get_new_errors(self) -> Set[str]:
        if len(self._fingerprints) < 2:
            return set(self._fingerprints[0]) if self._fingerprints else set()
        return self._fingerprints[-1] - self._fingerprints[-2]

    def get_fixed_errors(self) -> Set[str]:
        if len(self._fingerprints) < 2:
            return set()
        return self._fingerprints[-2] - self._fingerprints[-1]

    def restore_from_history(self, error_counts: Iterable[int]) -> None:
        """Rebuild state from saved counts; fingerprints are not recoverable."""
        counts = list(error_counts)
        if not counts:
            return
        self.reset()
        self._error_counts = counts
        self._fingerprints = [set() for _ in counts]
        for index in range(1, len(counts)):
            self._update_progress(index)

    def get_error_count_history(self) -> List[int]:
        return list(self._error_counts)

    def reset(self) -> None:
        self._error_counts = []
        self._fingerprints = []
        self._last_improvement = -1
        self._stagnation_count = 0


def analyze_progress(breaker: CircuitBreaker, detector: ConvergenceDetector) -> ProgressAnalysis:
    """
    Decide whether the healing loop should keep going.

    Returns:
        ProgressAnalysis; stop when the circuit is open or errors are gone,
        escalate when the trend is degrading, oscillating or stagnant
    """
    state = breaker.get_state()
    info = detector.get_info()

    if state.is_open:
        return ProgressAnalysis(False, f"Circuit breaker open: {state.open_reason.value}",
                                ProgressRecommendation.STOP)
    if info.converged:
        return ProgressAnalysis(False, "All errors resolved", ProgressRecommendation.STOP)
    if info.trend is ConvergenceTrend.DEGRADING:
        return ProgressAnalysis(False, "Error count increasing - fixes are making things worse",
                                ProgressRecommendation.ESCALATE)
    if info.trend is ConvergenceTrend.OSCILLATING:
        return ProgressAnalysis(False, "Error counts oscillating - cannot converge",
                                ProgressRecommendation.ESCALATE)
    if info.stagnation_count >= 2:
        return ProgressAnalysis(False, "No improvement in last 2 attempts - stagnating",
                                ProgressRecommendation.ESCALATE)
    return ProgressAnalysis(True, "Progress being made", ProgressRecommendation.CONTINUE)
