"""Unit tests for the healing circuit breaker and convergence detector."""

import time

import pytest

from journeyforge.core.models import (
    CircuitBreakerConfig,
    CircuitBreakerState,
    CircuitOpenReason,
    ConvergenceTrend,
    ErrorRecord,
    FailureCategory,
    ProgressRecommendation,
)
from journeyforge.services.circuit_breaker import CircuitBreaker
from journeyforge.services.convergence_detector import ConvergenceDetector, analyze_progress


def errors(*fingerprints):
    return [ErrorRecord(FailureCategory.SELECTOR, f"error {fp}", fp) for fp in fingerprints]


def record_counts(detector, *counts):
    for index, count in enumerate(counts):
        detector.record_attempt(errors(*[f"e{index}-{n}" for n in range(count)]))


class TestCircuitBreaker:
    """Test cases for CircuitBreaker stop conditions."""

    @pytest.fixture
    def lenient(self):
        return CircuitBreakerConfig(max_attempts=10, same_error_threshold=10)

    def test_starts_closed(self):
        """Test a new breaker allows attempts."""
        breaker = CircuitBreaker()
        assert breaker.can_attempt()
        assert breaker.remaining_attempts() == 3
        assert breaker.get_state().start_time > 0

    def test_max_attempts(self):
        """Test the attempt limit opens the circuit."""
        breaker = CircuitBreaker()
        for fp in ("a", "b", "c"):
            state = breaker.record_attempt(errors(fp))
        assert state.is_open
        assert state.open_reason is CircuitOpenReason.MAX_ATTEMPTS
        assert breaker.remaining_attempts() == 0
        assert not breaker.can_attempt()

    def test_same_error(self):
        """Test a fingerprint seen twice opens the circuit."""
        breaker = CircuitBreaker()
        breaker.record_attempt(errors("a"))
        assert not breaker.is_open
        state = breaker.record_attempt(errors("a"))
        assert state.open_reason is CircuitOpenReason.SAME_ERROR

    def test_max_attempts_checked_first(self):
        """Test only the first failing check is reported."""
        breaker = CircuitBreaker(CircuitBreakerConfig(max_attempts=2))
        breaker.record_attempt(errors("a"))
        assert breaker.record_attempt(errors("a")).open_reason is CircuitOpenReason.MAX_ATTEMPTS

    def test_oscillation(self, lenient):
        """Test two alternating fingerprints open the circuit."""
        breaker = CircuitBreaker(lenient)
        for fp in ("a", "b", "a"):
            breaker.record_attempt(errors(fp))
        assert not breaker.is_open
        assert breaker.record_attempt(errors("b")).open_reason is CircuitOpenReason.OSCILLATION

    def test_oscillation_detection_can_be_disabled(self, lenient):
        """Test the oscillation switch."""
        lenient.detect_oscillation = False
        breaker = CircuitBreaker(lenient)
        for fp in ("a", "b", "a", "b"):
            breaker.record_attempt(errors(fp))
        assert not breaker.is_open

    def test_timeout(self):
        """Test the wall-clock budget is enforced by can_attempt."""
        started = CircuitBreakerState(start_time=time.time() * 1000 - 10000)
        breaker = CircuitBreaker(CircuitBreakerConfig(total_timeout_ms=5000), started)
        assert not breaker.can_attempt()
        assert breaker.get_state().open_reason is CircuitOpenReason.TIMEOUT

    def test_token_budget(self):
        """Test token spend opens the circuit."""
        breaker = CircuitBreaker(CircuitBreakerConfig(max_token_budget=100))
        assert breaker.would_exceed_budget(150)
        state = breaker.record_attempt(errors("a"), tokens_used=150)
        assert state.open_reason is CircuitOpenReason.BUDGET_EXCEEDED
        assert breaker.remaining_token_budget() == 0

    def test_open_circuit_ignores_attempts(self):
        """Test the circuit stays open until reset."""
        breaker = CircuitBreaker(CircuitBreakerConfig(max_attempts=1))
        breaker.record_attempt(errors("a"))
        assert breaker.record_attempt(errors("b")).attempt_count == 1

        breaker.reset()
        assert not breaker.is_open
        assert breaker.get_state().attempt_count == 0

    def test_history_limit(self, lenient):
        """Test the error history keeps only the newest fingerprints."""
        lenient.history_limit = 3
        breaker = CircuitBreaker(lenient)
        breaker.record_attempt(errors("a", "b", "c", "d"))
        assert breaker.get_state().error_history == ["b", "c", "d"]

    def test_state_is_a_copy(self):
        """Test callers cannot mutate breaker state."""
        breaker = CircuitBreaker()
        breaker.get_state().error_history.append("x")
        assert breaker.get_state().error_history == []

    def test_restore_state(self):
        """Test a saved state resumes with its counters."""
        saved = CircuitBreakerState(attempt_count=2, error_history=["a"])
        breaker = CircuitBreaker(initial_state=saved)
        assert breaker.remaining_attempts() == 1
        assert breaker.get_state().start_time > 0
        assert breaker.get_state().to_dict()["attemptCount"] == 2


class TestConvergenceDetector:
    """Test cases for error-count trends."""

    def test_single_attempt_is_stagnating(self):
        """Test one data point has no trend."""
        detector = ConvergenceDetector()
        record_counts(detector, 3)
        assert detector.detect_trend() is ConvergenceTrend.STAGNATING

    def test_improving(self):
        """Test falling counts."""
        detector = ConvergenceDetector()
        record_counts(detector, 3, 2, 1)
        info = detector.get_info()
        assert info.trend is ConvergenceTrend.IMPROVING
        assert info.last_improvement == 2
        assert info.stagnation_count == 0
        assert detector.get_improvement_percentage() == 67

    def test_degrading(self):
        """Test rising counts."""
        detector = ConvergenceDetector()
        record_counts(detector, 1, 3)
        assert detector.detect_trend() is ConvergenceTrend.DEGRADING

    def test_oscillating(self):
        """Test counts alternating direction."""
        detector = ConvergenceDetector()
        record_counts(detector, 2, 1, 2, 1)
        assert detector.detect_trend() is ConvergenceTrend.OSCILLATING

    def test_stagnating(self):
        """Test flat counts."""
        detector = ConvergenceDetector()
        record_counts(detector, 2, 2, 2)
        assert detector.detect_trend() is ConvergenceTrend.STAGNATING
        assert detector.get_info().stagnation_count == 2

    def test_converged(self):
        """Test a zero count converges."""
        detector = ConvergenceDetector()
        record_counts(detector, 2, 0)
        assert detector.is_converged()
        assert detector.get_improvement_percentage() == 100

    def test_new_and_fixed_errors(self):
        """Test fingerprint differences between the last two attempts."""
        detector = ConvergenceDetector()
        detector.record_attempt(errors("a", "b"))
        detector.record_attempt(errors("b", "c"))
        assert detector.get_new_errors() == {"c"}
        assert detector.get_fixed_errors() == {"a"}

    def test_restore_from_history(self):
        """Test progress counters are rebuilt from counts."""
        detector = ConvergenceDetector()
        detector.restore_from_history([5, 3, 3, 3])
        info = detector.get_info()
        assert info.error_counts == [5, 3, 3, 3]
        assert info.last_improvement == 1
        assert info.stagnation_count == 2
        assert detector.get_new_errors() == set()


class TestAnalyzeProgress:
    """Test cases for continue / stop / escalate decisions."""

    def test_open_breaker_stops(self):
        """Test an open circuit always stops."""
        breaker = CircuitBreaker(CircuitBreakerConfig(max_attempts=1))
        breaker.record_attempt(errors("a"))
        analysis = analyze_progress(breaker, ConvergenceDetector())
        assert analysis.recommendation is ProgressRecommendation.STOP
        assert "MAX_ATTEMPTS" in analysis.reason

    def test_converged_stops(self):
        """Test resolved errors stop the loop."""
        detector = ConvergenceDetector()
        record_counts(detector, 2, 0)
        analysis = analyze_progress(CircuitBreaker(), detector)
        assert not analysis.should_continue
        assert analysis.reason == "All errors resolved"

    def test_degrading_escalates(self):
        """Test worsening results escalate."""
        detector = ConvergenceDetector()
        record_counts(detector, 1, 3)
        assert analyze_progress(CircuitBreaker(), detector).recommendation is ProgressRecommendation.ESCALATE

    def test_improving_continues(self):
        """Test progress keeps the loop going."""
        detector = ConvergenceDetector()
        record_counts(detector, 3, 2)
        analysis = analyze_progress(CircuitBreaker(), detector)
        assert analysis.should_continue
        assert analysis.recommendation is ProgressRecommendation.CONTINUE
