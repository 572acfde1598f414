"""
Healing Orchestrator for the test self-healing loop.

Drives one healing session for one generated test file: verify, classify,
pick the next untried fix, apply it to the source, write it back, re-verify,
log the attempt and update the circuit breaker and convergence detector.
When a learned pattern store is attached, the final outcome is reported
back for every step the test took from it.
Every way out of the loop persists the heal-log first and returns a
``HealingResult``; nothing here raises for an unhealable test.
"""

import time
import uuid
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.config_loader import get_breaker_config, get_healing_config
from ..core.exceptions import FixApplicationError, PatternStoreError
from ..core.logging_config import get_component_logger
from ..core.models import (
    AriaInfo,
    AttemptResult,
    CircuitBreakerConfig,
    ClassifiedFailure,
    FailureCategory,
    FixType,
    HealingAttempt,
    HealingConfiguration,
    HealingResult,
    HealingStatus,
    ResolutionSource,
    ResolvedStep,
    VerifySummary,
)
from .circuit_breaker import CircuitBreaker
from .convergence_detector import ConvergenceDetector, analyze_progress
from .failure_classifier import classify_verify_summary, extract_line_number, to_error_records
from .fix_applier import FixContext, SourceFileUpdater, apply_fix
from .healing_logger import HealingLogger
from .healing_rules import evaluate_healing, get_next_fix, get_post_healing_recommendation
from .learned_pattern_store import LearnedPatternStore

logger = logging.getLogger(__name__)

VerifyFn = Callable[[], VerifySummary]

# Failures in these categories say nothing about how a step was mapped.
NO_FEEDBACK_CATEGORIES = frozenset([FailureCategory.AUTH, FailureCategory.ENV])


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def _first_error_message(summary: Optional[VerifySummary]) -> str:
    if summary is None or not summary.errors:
        return ""
    return summary.errors[0].message


def _evidence(summary: VerifySummary) -> List[str]:
    evidence = [summary.report_path] if summary.report_path else []
    evidence.extend(summary.artifacts.values())
    return evidence


def _failure_feedback(classification: ClassifiedFailure) -> Optional[bool]:
    return None if classification.category in NO_FEEDBACK_CATEGORIES else False


class HealingOrchestrator:
    """Runs bounded healing sessions against generated test files."""

    def __init__(
        self,
        config: Optional[HealingConfiguration] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        updater: Optional[SourceFileUpdater] = None,
        log_dir: Optional[str] = None,
        store: Optional[LearnedPatternStore] = None,
    ):
        """Initialize the healing orchestrator.

        Args:
            config: Healing policy; loaded from the healing config file when omitted
            breaker_config: Circuit breaker limits; loaded from the same file when omitted
            updater: Writes healed source back to disk (backups + syntax check)
            log_dir: Directory for heal-log files; defaults to HEALING_LOG_DIR
            store: Learned pattern store that receives the final outcome of
                learned steps; no feedback is recorded when omitted
        """
        self.config = config or get_healing_config()
        self.breaker_config = breaker_config or get_breaker_config()
        self.updater = updater or SourceFileUpdater()
        self.log_dir = log_dir
        self.store = store

    def heal(self, journey_id: str, test_file: str, verify: VerifyFn,
             aria_info: Optional[AriaInfo] = None,
             resolved_steps: Optional[Iterable[ResolvedStep]] = None) -> HealingResult:
        """
        Heal ``test_file`` until it passes or a stop condition is reached.

        Args:
            journey_id: Journey the test was generated from
            test_file: Path of the generated test module
            verify: Runs the test once and reports the outcome; never retried here
            aria_info: Accessibility facts about the failing element, if captured
            resolved_steps: Steps the test was rendered from; learned ones are
                reported to the store as passing or failing

        Returns:
            HealingResult with status healed, failed, not_healable or exhausted
        """
        session_id = uuid.uuid4().hex[:12]
        session_logger = get_component_logger("healing", journey_id=journey_id, session_id=session_id)
        session_logger.log_operation_start("heal", test_file=test_file)
        session_start = time.time()

        healing_log = HealingLogger(journey_id, self.log_dir, self.config.max_attempts)
        breaker = CircuitBreaker(self.breaker_config)
        detector = ConvergenceDetector()

        learned = [s for s in resolved_steps or () if s.source is ResolutionSource.LEARNED]

        def finish(status: HealingStatus, recommendation: Optional[str] = None,
                   feedback: Optional[bool] = None, **fields: Any) -> HealingResult:
            if feedback is not None and learned:
                self._record_feedback(journey_id, learned, feedback, session_logger)

            if status is HealingStatus.HEALED:
                healing_log.mark_healed()
            elif status is HealingStatus.EXHAUSTED:
                healing_log.mark_exhausted(recommendation)
            else:
                healing_log.mark_failed(recommendation)

            result = HealingResult(
                success=status is HealingStatus.HEALED,
                status=status,
                attempts=fields.pop("attempts", healing_log.attempt_count),
                log_path=healing_log.get_output_path(),
                recommendation=recommendation,
                **fields,
            )
            duration = time.time() - session_start
            if result.success:
                session_logger.log_operation_success("heal", duration, attempts=result.attempts)
            else:
                session_logger.log_operation_failure("heal", duration, status.value,
                                                     attempts=result.attempts)
            return result

        if not Path(test_file).exists():
            return finish(HealingStatus.FAILED, "Test file not found", attempts=0)
        code = Path(test_file).read_text(encoding="utf-8")

        try:
            summary = verify()
        except Exception as e:
            session_logger.error(f"❌ Initial verification failed: {e}")
            return finish(HealingStatus.FAILED, f"Initial verification failed: {e}", attempts=0)

        if summary.is_passing:
            session_logger.info("✅ Test already passes, nothing to heal")
            return finish(HealingStatus.HEALED, feedback=True, attempts=0)

        classification = classify_verify_summary(summary)
        if classification.category is FailureCategory.UNKNOWN and classification.confidence == 0:
            return finish(HealingStatus.FAILED, "Unable to classify failure for healing",
                          feedback=False, attempts=0)

        evaluation = evaluate_healing(classification, self.config)
        if not evaluation.can_heal:
            session_logger.warning(f"🚫 Not healable: {evaluation.reason}")
            return finish(HealingStatus.NOT_HEALABLE, evaluation.reason,
                          feedback=_failure_feedback(classification), attempts=0)

        detector.record_attempt(to_error_records(summary))
        attempted: List[FixType] = []

        while healing_log.attempt_count < self.config.max_attempts and breaker.can_attempt():
            attempt_number = healing_log.attempt_count + 1
            start = time.time()

            next_fix = get_next_fix(classification, attempted, self.config)
            if next_fix is None:
                return finish(HealingStatus.EXHAUSTED,
                              get_post_healing_recommendation(classification, healing_log.attempt_count),
                              feedback=_failure_feedback(classification))
            attempted.append(next_fix)
            session_logger.log_progress("heal", attempt_number / self.config.max_attempts,
                                        f"attempt {attempt_number}: {next_fix.value}")

            context = FixContext(
                line_number=extract_line_number(summary, test_file),
                error_message=_first_error_message(summary),
                aria_info=aria_info,
                max_timeout_increase=self.config.max_timeout_increase,
            )
            fix = apply_fix(code, next_fix, context)

            def record(result: AttemptResult, error_message: Optional[str] = None,
                       evidence: Optional[List[str]] = None) -> None:
                healing_log.log_attempt(HealingAttempt(
                    attempt=attempt_number,
                    failure_type=classification.category.value,
                    fix_type=next_fix.value,
                    file=test_file,
                    change=fix.description,
                    evidence=evidence or [],
                    result=result,
                    error_message=error_message,
                    duration=_elapsed_ms(start),
                ))

            if not fix.applied:
                record(AttemptResult.FAIL, "Fix not applied")
                continue

            try:
                self.updater.write_source(test_file, fix.code)
            except FixApplicationError as e:
                session_logger.warning(f"⚠️ Rejected {next_fix.value} fix: {e}")
                record(AttemptResult.ERROR, str(e))
                continue
            code = fix.code

            try:
                summary = verify()
            except Exception as e:
                session_logger.error(f"❌ Verification after {next_fix.value} failed: {e}")
                record(AttemptResult.ERROR, str(e))
                breaker.record_attempt([])
                continue

            if summary.is_passing:
                record(AttemptResult.PASS, evidence=_evidence(summary))
                session_logger.info(f"✅ Healed with {next_fix.value} after {attempt_number} attempt(s)")
                return finish(HealingStatus.HEALED, feedback=True, applied_fix=next_fix, modified_code=code)

            record(AttemptResult.FAIL, _first_error_message(summary) or "Unknown error",
                   evidence=_evidence(summary))

            reclassified = classify_verify_summary(summary)
            if (reclassified.category is not classification.category
                    and reclassified.category is not FailureCategory.UNKNOWN):
                session_logger.info(f"🔀 Failure category changed: "
                                    f"{classification.category.value} -> {reclassified.category.value}")
                classification = reclassified

            errors = to_error_records(summary)
            breaker.record_attempt(errors)
            detector.record_attempt(errors)

            analysis = analyze_progress(breaker, detector)
            if not analysis.should_continue:
                recommendation = (f"{get_post_healing_recommendation(classification, healing_log.attempt_count)} "
                                  f"Stopped: {analysis.reason}")
                return finish(HealingStatus.EXHAUSTED, recommendation,
                              feedback=_failure_feedback(classification), stop_reason=analysis.reason)

        stop_reason = None
        state = breaker.get_state()
        if state.is_open:
            stop_reason = f"Circuit breaker open: {state.open_reason.value}"
        recommendation = get_post_healing_recommendation(classification, healing_log.attempt_count)
        if stop_reason:
            recommendation = f"{recommendation} Stopped: {stop_reason}"
        return finish(HealingStatus.EXHAUSTED, recommendation,
                      feedback=_failure_feedback(classification), stop_reason=stop_reason)

    def _record_feedback(self, journey_id: str, learned: List[ResolvedStep], passed: bool,
                         session_logger: logging.LoggerAdapter) -> None:
        """Report the verified outcome of learned steps to the store."""
        if self.store is None:
            return

        for resolved in learned:
            try:
                if passed:
                    self.store.record_success(resolved.step.text, resolved.action, journey_id)
                else:
                    self.store.record_failure(resolved.step.text, journey_id)
            except (PatternStoreError, OSError) as e:
                session_logger.warning(f"⚠️ LLKB feedback skipped for '{resolved.step.text}': {e}")
        session_logger.info(f"📚 Recorded {'success' if passed else 'failure'} "
                            f"for {len(learned)} learned step(s)")

    def preview_fixes(self, code: str, classification: ClassifiedFailure) -> List[Dict[str, Any]]:
        """
        Dry run: fixes that would change ``code`` for this failure.

        Returns:
            List of ``{"fixType", "preview", "confidence"}`` in rule priority order
        """
        evaluation = evaluate_healing(classification, self.config)
        if not evaluation.can_heal:
            return []

        previews = []
        for fix_type in evaluation.applicable_fixes:
            result = apply_fix(code, fix_type, FixContext(max_timeout_increase=self.config.max_timeout_increase))
            if result.applied:
                previews.append({
                    "fixType": fix_type.value,
                    "preview": result.description,
                    "confidence": result.confidence,
                })
        return previews

    def would_fix_apply(self, code: str, fix_type: FixType) -> bool:
        return apply_fix(code, fix_type, FixContext()).applied
