"""Data models for the test self-healing system."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Any, Set
from enum import Enum


class FailureCategory(Enum):
    """Categories a runner failure is classified into."""
    SELECTOR = "selector"
    TIMING = "timing"
    NAVIGATION = "navigation"
    DATA = "data"
    AUTH = "auth"
    ENV = "env"
    SCRIPT = "script"
    UNKNOWN = "unknown"


class FixType(Enum):
    """Source transforms the healing loop can apply."""
    MISSING_AWAIT = "missing-await"
    SELECTOR_REFINE = "selector-refine"
    ADD_EXACT = "add-exact"
    NAVIGATION_WAIT = "navigation-wait"
    WEB_FIRST_ASSERTION = "web-first-assertion"
    TIMEOUT_INCREASE = "timeout-increase"

    # Never applied, whatever the configuration says.
    ADD_SLEEP = "add-sleep"
    REMOVE_ASSERTION = "remove-assertion"
    WEAKEN_ASSERTION = "weaken-assertion"
    FORCE_CLICK = "force-click"
    BYPASS_AUTH = "bypass-auth"


# Categories the healing loop must never try to fix, whatever the confidence.
UNHEALABLE_CATEGORIES: FrozenSet[FailureCategory] = frozenset([
    FailureCategory.AUTH,
    FailureCategory.ENV,
    FailureCategory.UNKNOWN,
])


FORBIDDEN_FIXES: List[FixType] = [
    FixType.ADD_SLEEP,
    FixType.REMOVE_ASSERTION,
    FixType.WEAKEN_ASSERTION,
    FixType.FORCE_CLICK,
    FixType.BYPASS_AUTH,
]


class VerifyStatus(Enum):
    """Outcome reported by the external test runner."""
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class RunnerError:
    """One error reported by the test runner."""
    message: str
    stack: str = ""
    location: Optional[str] = None
    snippet: Optional[str] = None
    test_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "stack": self.stack,
            "location": self.location,
            "snippet": self.snippet,
            "testName": self.test_name,
        }


@dataclass
class VerifySummary:
    """Result of one verification run of a test file."""
    status: VerifyStatus
    errors: List[RunnerError] = field(default_factory=list)
    artifacts: Dict[str, str] = field(default_factory=dict)
    report_path: Optional[str] = None
    duration: float = 0.0
    passed: int = 0
    failed: int = 0

    @property
    def is_passing(self) -> bool:
        return self.status is VerifyStatus.PASSED


@dataclass
class ClassifiedFailure:
    """A runner error mapped to a failure category."""
    category: FailureCategory
    confidence: float
    explanation: str
    suggestion: str
    matched_keywords: List[str] = field(default_factory=list)
    is_test_issue: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "suggestion": self.suggestion,
            "matchedKeywords": list(self.matched_keywords),
            "isTestIssue": self.is_test_issue,
        }


@dataclass(frozen=True)
class ErrorRecord:
    """A fingerprinted runner error, the unit the breaker and detector count."""
    category: FailureCategory
    message: str
    fingerprint: str
    location: Optional[str] = None


@dataclass
class HealingRule:
    """Maps failure categories to one fix type."""
    id: str
    name: str
    categories: List[FailureCategory]
    fix_type: FixType
    priority: int
    enabled: bool = True
    description: str = ""


@dataclass
class HealingConfiguration:
    """Configuration settings for the self-healing loop."""
    enabled: bool = True
    max_attempts: int = 3
    allowed_fixes: List[FixType] = field(default_factory=lambda: [
        FixType.MISSING_AWAIT,
        FixType.SELECTOR_REFINE,
        FixType.ADD_EXACT,
        FixType.NAVIGATION_WAIT,
        FixType.WEB_FIRST_ASSERTION,
    ])
    forbidden_fixes: List[FixType] = field(default_factory=lambda: list(FORBIDDEN_FIXES))
    max_timeout_increase: int = 30000  # milliseconds
    rule_overrides: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "enabled": self.enabled,
            "max_attempts": self.max_attempts,
            "allowed_fixes": [f.value for f in self.allowed_fixes],
            "forbidden_fixes": [f.value for f in self.forbidden_fixes],
            "max_timeout_increase": self.max_timeout_increase,
            "rule_overrides": dict(self.rule_overrides),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealingConfiguration':
        """Create configuration from dictionary."""
        data = data.copy()
        if "allowed_fixes" in data:
            data["allowed_fixes"] = [FixType(f) for f in data["allowed_fixes"]]
        if "forbidden_fixes" in data:
            data["forbidden_fixes"] = [FixType(f) for f in data["forbidden_fixes"]]
        return cls(**data)


@dataclass
class HealingEvaluation:
    """Whether a failure may be healed, and with which fixes."""
    can_heal: bool
    applicable_fixes: List[FixType] = field(default_factory=list)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canHeal": self.can_heal,
            "applicableFixes": [f.value for f in self.applicable_fixes],
            "reason": self.reason,
        }


@dataclass
class FixResult:
    """Outcome of applying one fix transform to test source."""
    applied: bool
    code: str
    description: str
    confidence: float = 0.0
    new_locator: Optional[str] = None


@dataclass
class AriaInfo:
    """Accessibility facts about the failing element, when the runner has them."""
    role: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    testid: Optional[str] = None


class AttemptResult(Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


@dataclass
class HealingAttempt:
    """Record of a single healing attempt."""
    attempt: int
    failure_type: str
    fix_type: str
    file: str
    change: str
    evidence: List[str] = field(default_factory=list)
    result: AttemptResult = AttemptResult.FAIL
    error_message: Optional[str] = None
    duration: int = 0  # milliseconds
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "failureType": self.failure_type,
            "fixType": self.fix_type,
            "file": self.file,
            "change": self.change,
            "evidence": list(self.evidence),
            "result": self.result.value,
            "errorMessage": self.error_message,
            "duration": self.duration,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealingAttempt':
        return cls(
            attempt=data["attempt"],
            failure_type=data["failureType"],
            fix_type=data["fixType"],
            file=data["file"],
            change=data["change"],
            evidence=list(data.get("evidence", [])),
            result=AttemptResult(data.get("result", "fail")),
            error_message=data.get("errorMessage"),
            duration=data.get("duration", 0),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
        )


class HealingLogStatus(Enum):
    """Status of a persisted healing session log."""
    IN_PROGRESS = "in_progress"
    HEALED = "healed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


@dataclass
class HealingSummary:
    total_attempts: int = 0
    successful_fixes: int = 0
    failed_attempts: int = 0
    total_duration: int = 0
    fix_types_attempted: List[str] = field(default_factory=list)
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAttempts": self.total_attempts,
            "successfulFixes": self.successful_fixes,
            "failedAttempts": self.failed_attempts,
            "totalDuration": self.total_duration,
            "fixTypesAttempted": list(self.fix_types_attempted),
            "recommendation": self.recommendation,
        }


@dataclass
class HealingLog:
    """Append-only record of one healing session."""
    journey_id: str
    max_attempts: int
    session_start: datetime = field(default_factory=datetime.now)
    session_end: Optional[datetime] = None
    status: HealingLogStatus = HealingLogStatus.IN_PROGRESS
    attempts: List[HealingAttempt] = field(default_factory=list)
    summary: Optional[HealingSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "journeyId": self.journey_id,
            "sessionStart": self.session_start.isoformat(),
            "maxAttempts": self.max_attempts,
            "status": self.status.value,
            "attempts": [a.to_dict() for a in self.attempts],
        }
        if self.session_end:
            data["sessionEnd"] = self.session_end.isoformat()
        if self.summary:
            data["summary"] = self.summary.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealingLog':
        summary = data.get("summary")
        return cls(
            journey_id=data["journeyId"],
            max_attempts=data.get("maxAttempts", 3),
            session_start=datetime.fromisoformat(data["sessionStart"]),
            session_end=datetime.fromisoformat(data["sessionEnd"]) if data.get("sessionEnd") else None,
            status=HealingLogStatus(data.get("status", "in_progress")),
            attempts=[HealingAttempt.from_dict(a) for a in data.get("attempts", [])],
            summary=HealingSummary(
                total_attempts=summary.get("totalAttempts", 0),
                successful_fixes=summary.get("successfulFixes", 0),
                failed_attempts=summary.get("failedAttempts", 0),
                total_duration=summary.get("totalDuration", 0),
                fix_types_attempted=list(summary.get("fixTypesAttempted", [])),
                recommendation=summary.get("recommendation"),
            ) if summary else None,
        )


class HealingStatus(Enum):
    """Terminal status of a healing run."""
    HEALED = "healed"
    FAILED = "failed"
    NOT_HEALABLE = "not_healable"
    EXHAUSTED = "exhausted"


@dataclass
class HealingResult:
    """Structured outcome returned by the healing orchestrator."""
    success: bool
    status: HealingStatus
    attempts: int
    log_path: Optional[str] = None
    applied_fix: Optional[FixType] = None
    recommendation: Optional[str] = None
    modified_code: Optional[str] = None
    stop_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "attempts": self.attempts,
            "appliedFix": self.applied_fix.value if self.applied_fix else None,
            "logPath": self.log_path,
            "recommendation": self.recommendation,
            "stopReason": self.stop_reason,
        }


class CircuitOpenReason(Enum):
    MAX_ATTEMPTS = "MAX_ATTEMPTS"
    SAME_ERROR = "SAME_ERROR"
    OSCILLATION = "OSCILLATION"
    TIMEOUT = "TIMEOUT"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


@dataclass
class CircuitBreakerConfig:
    """Stop conditions for one healing session."""
    max_attempts: int = 3
    same_error_threshold: int = 2
    detect_oscillation: bool = True
    oscillation_window: int = 4
    total_timeout_ms: int = 300000
    cooldown_ms: int = 1000
    max_token_budget: int = 50000
    history_limit: int = 50


@dataclass
class CircuitBreakerState:
    """Snapshot of breaker state; restorable."""
    is_open: bool = False
    open_reason: Optional[CircuitOpenReason] = None
    attempt_count: int = 0
    error_history: List[str] = field(default_factory=list)
    tokens_used: int = 0
    start_time: float = 0.0  # epoch milliseconds
    last_attempt_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOpen": self.is_open,
            "openReason": self.open_reason.value if self.open_reason else None,
            "attemptCount": self.attempt_count,
            "errorHistory": list(self.error_history),
            "tokensUsed": self.tokens_used,
            "startTime": self.start_time,
            "lastAttemptTime": self.last_attempt_time,
        }


class ConvergenceTrend(Enum):
    IMPROVING = "improving"
    DEGRADING = "degrading"
    OSCILLATING = "oscillating"
    STAGNATING = "stagnating"


@dataclass
class ConvergenceInfo:
    """Error-count history for a session, plus derived trend."""
    error_counts: List[int] = field(default_factory=list)
    error_fingerprints: List[Set[str]] = field(default_factory=list)
    last_improvement: int = -1
    stagnation_count: int = 0
    trend: ConvergenceTrend = ConvergenceTrend.STAGNATING
    converged: bool = False


class ProgressRecommendation(Enum):
    CONTINUE = "continue"
    STOP = "stop"
    ESCALATE = "escalate"


@dataclass
class ProgressAnalysis:
    """Whether the healing loop should keep going."""
    should_continue: bool
    reason: str
    recommendation: ProgressRecommendation
