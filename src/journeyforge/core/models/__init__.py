"""Core data models for step resolution and self-healing."""

from .action_models import (
    ACTION_FIELDS,
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    ResolutionSource,
    ResolvedStep,
    Step,
    StepHints,
    ToastType,
    ValueSpec,
    ValueType,
    assert_exhaustive,
)
from .pattern_models import (
    LearnedMatch,
    LearnedPattern,
    PatternLayer,
    PatternStats,
    PromotedPattern,
    PruneResult,
)
from .healing_models import (
    FORBIDDEN_FIXES,
    UNHEALABLE_CATEGORIES,
    AriaInfo,
    AttemptResult,
    CircuitBreakerConfig,
    CircuitBreakerState,
    CircuitOpenReason,
    ClassifiedFailure,
    ConvergenceInfo,
    ConvergenceTrend,
    ErrorRecord,
    FailureCategory,
    FixResult,
    FixType,
    HealingAttempt,
    HealingConfiguration,
    HealingEvaluation,
    HealingLog,
    HealingLogStatus,
    HealingResult,
    HealingRule,
    HealingStatus,
    HealingSummary,
    ProgressAnalysis,
    ProgressRecommendation,
    RunnerError,
    VerifyStatus,
    VerifySummary,
)

# Note: Service classes are imported separately from their respective modules

__all__ = [
    "ACTION_FIELDS",
    "Action",
    "ActionType",
    "LocatorSpec",
    "LocatorStrategy",
    "ResolutionSource",
    "ResolvedStep",
    "Step",
    "StepHints",
    "ToastType",
    "ValueSpec",
    "ValueType",
    "assert_exhaustive",
    "LearnedMatch",
    "LearnedPattern",
    "PatternLayer",
    "PatternStats",
    "PromotedPattern",
    "PruneResult",
    "FORBIDDEN_FIXES",
    "UNHEALABLE_CATEGORIES",
    "AriaInfo",
    "AttemptResult",
    "CircuitBreakerConfig",
    "CircuitBreakerState",
    "CircuitOpenReason",
    "ClassifiedFailure",
    "ConvergenceInfo",
    "ConvergenceTrend",
    "ErrorRecord",
    "FailureCategory",
    "FixResult",
    "FixType",
    "HealingAttempt",
    "HealingConfiguration",
    "HealingEvaluation",
    "HealingLog",
    "HealingLogStatus",
    "HealingResult",
    "HealingRule",
    "HealingStatus",
    "HealingSummary",
    "ProgressAnalysis",
    "ProgressRecommendation",
    "RunnerError",
    "VerifyStatus",
    "VerifySummary",
]
