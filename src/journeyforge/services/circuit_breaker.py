"""
Circuit breaker for the healing loop.

After every attempt the breaker checks, in order: attempt limit, a repeated
error fingerprint, two fingerprints alternating, the wall-clock budget, and
the token budget. The first condition that holds opens the circuit and the
remaining checks are skipped. Once open, the circuit stays open for the
session; only ``reset()`` closes it.
"""

import time
import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable, Optional

from ..core.models import (
    CircuitBreakerConfig,
    CircuitBreakerState,
    CircuitOpenReason,
    ErrorRecord,
)

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class CircuitBreaker:
    """Decides whether another healing attempt is worth making."""

    def __init__(self, config: Optional[CircuitBreakerConfig] = None,
                 initial_state: Optional[CircuitBreakerState] = None):
        self.config = config or CircuitBreakerConfig()
        if initial_state is not None:
            self._state = replace(
                initial_state,
                error_history=list(initial_state.error_history)[-self.config.history_limit:],
                start_time=initial_state.start_time or _now_ms(),
            )
        else:
            self._state = self._create_initial_state()

    def _create_initial_state(self) -> CircuitBreakerState:
        return CircuitBreakerState(start_time=_now_ms())

    def reset(self) -> None:
        self._state = self._create_initial_state()

    def get_state(self) -> CircuitBreakerState:
        """Copy of the current state."""
        return replace(self._state, error_history=list(self._state.error_history))

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    def record_attempt(self, errors: Iterable[ErrorRecord], tokens_used: int = 0) -> CircuitBreakerState:
        """
        Record one attempt's errors and re-evaluate the stop conditions.

        Args:
            errors: Errors observed after the attempt
            tokens_used: Tokens spent on the attempt, if any

        Returns:
            State after the attempt
        """
        if self._state.is_open:
            return self.get_state()

        state = self._state
        state.attempt_count += 1
        state.last_attempt_time = _now_ms()
        state.tokens_used += tokens_used
        state.error_history.extend(e.fingerprint for e in errors)
        if len(state.error_history) > self.config.history_limit:
            del state.error_history[:-self.config.history_limit]

        for check, reason in (
            (self._max_attempts_reached, CircuitOpenReason.MAX_ATTEMPTS),
            (self._same_error_repeated, CircuitOpenReason.SAME_ERROR),
            (self._oscillating, CircuitOpenReason.OSCILLATION),
            (self._timed_out, CircuitOpenReason.TIMEOUT),
            (self._budget_exhausted, CircuitOpenReason.BUDGET_EXCEEDED),
        ):
            if check():
                self._open(reason)
                break

        return self.get_state()

    def can_attempt(self) -> bool:
        if self._state.is_open:
            return False
        if self._timed_out():
            self._open(CircuitOpenReason.TIMEOUT)
        return not self._state.is_open

    def remaining_attempts(self) -> int:
        if self._state.is_open:
            return 0
        return max(0, self.config.max_attempts - self._state.attempt_count)

    def remaining_token_budget(self) -> int:
        return max(0, self.config.max_token_budget - self._state.tokens_used)

    def would_exceed_budget(self, estimated_tokens: int) -> bool:
        return self._state.tokens_used + estimated_tokens > self.config.max_token_budget

    def _max_attempts_reached(self) -> bool:
        return self._state.attempt_count >= self.config.max_attempts

    def _same_error_repeated(self) -> bool:
        history = self._state.error_history
        if len(history) < self.config.same_error_threshold:
            return False
        return any(count >= self.config.same_error_threshold
                   for count in Counter(history).values())

    def _oscillating(self) -> bool:
        if not self.config.detect_oscillation:
            return False
        window = self.config.oscillation_window
        history = self._state.error_history
        if len(history) < window:
            return False
        recent = history[-window:]
        if len(set(recent)) != 2:
            return False
        return all(recent[i] == recent[i - 2] for i in range(2, len(recent)))

    def _timed_out(self) -> bool:
        if not self._state.start_time:
            return False
        return _now_ms() - self._state.start_time >= self.config.total_timeout_ms

    def _budget_exhausted(self) -> bool:
        return self._state.tokens_used >= self.config.max_token_budget

    def _open(self, reason: CircuitOpenReason) -> None:
        self._state.is_open = True
        self._state.open_reason = reason
        logger.warning(f"🔌 Circuit breaker opened: {reason.value} "
                       f"after {self._state.attempt_count} attempt(s)")
