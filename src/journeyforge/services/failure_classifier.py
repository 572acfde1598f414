"""
Failure classification for test runner errors.

Each category carries a table of error signatures. The category with the most
signatures present in ``message + stack`` wins; confidence is
``matches / 3`` capped at 1.0. No match at all yields ``unknown``.

Signatures cover Playwright's Python and JavaScript wording, plain Python
exceptions, and the common Selenium messages older suites still produce.
"""

import hashlib
import os
import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

from ..core.models import (
    UNHEALABLE_CATEGORIES,
    ClassifiedFailure,
    ErrorRecord,
    FailureCategory,
    RunnerError,
    VerifyStatus,
    VerifySummary,
)

logger = logging.getLogger(__name__)


@dataclass
class ClassificationPattern:
    category: FailureCategory
    keywords: List[Pattern]
    explanation: str
    suggestion: str
    is_test_issue: bool


def _compile(*patterns: str) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


CLASSIFICATION_PATTERNS: List[ClassificationPattern] = [
    ClassificationPattern(
        category=FailureCategory.SELECTOR,
        keywords=_compile(
            r"locator\s+resolved\s+to\s+\d+\s+elements",
            r"locator\.\w+:\s+Error",
            r"waiting\s+for\s+(?:locator|get_by_\w+|getBy\w+)",
            r"element\s+is\s+not\s+visible",
            r"element\s+is\s+not\s+attached",
            r"element\s+is\s+not\s+enabled",
            r"(?:getBy\w+|get_by_\w+)\s*\([^)]+\)",
            r"strict\s+mode\s+violation",
            r"No\s+element\s+matches\s+selector",
            r"Target\s+closed",
            r"element\s+is\s+outside\s+of\s+the\s+viewport",
            r"NoSuchElementException",
            r"StaleElementReferenceException",
        ),
        explanation="Element locator failed to find or interact with element",
        suggestion="Update selector to use more stable locator strategy (role, label, testid)",
        is_test_issue=True,
    ),
    ClassificationPattern(
        category=FailureCategory.TIMING,
        keywords=_compile(
            r"timeout\s+\d+ms\s+exceeded",
            r"exceeded\s+while\s+waiting",
            r"timed?\s*out",
            r"waiting\s+for\s+navigation",
            r"waiting\s+for\s+load\s+state",
            r"response\s+took\s+too\s+long",
            r"expect\.\w+:\s+Timeout",
            r"navigation\s+was\s+interrupted",
            r"coroutine\s+'[^']+'\s+was\s+never\s+awaited",
        ),
        explanation="Operation timed out waiting for element or network",
        suggestion="Increase timeout or add explicit wait for expected state",
        is_test_issue=True,
    ),
    ClassificationPattern(
        category=FailureCategory.NAVIGATION,
        keywords=_compile(
            r"expected\s+url.*to.*match",
            r"expected.*(?:toHaveURL|to_have_url)",
            r"Page\s+URL\s+expected\s+to\s+(?:be|match)",
            r"page\s+has\s+been\s+closed",
            r"navigation\s+failed",
            r"net::ERR_",
            r"ERR_CONNECTION",
            r"ERR_NAME_NOT_RESOLVED",
            r"redirect",
            r"page\.goto:\s+(?:Error|net::)",
            r"URL\s+is\s+not\s+valid",
        ),
        explanation="Navigation to URL failed or URL mismatch",
        suggestion="Check URL configuration and network connectivity",
        is_test_issue=False,
    ),
    ClassificationPattern(
        category=FailureCategory.DATA,
        keywords=_compile(
            r"expected.*to\s+(?:be|equal|match|contain|have)",
            r"received.*but\s+expected",
            r"toEqual",
            r"toBe\(",
            r"toContain",
            r"(?:toHaveText|to_have_text)",
            r"(?:toHaveValue|to_have_value)",
            r"assertion\s+failed",
            r"AssertionError",
            r"expected\s+value",
            r"does\s+not\s+match",
        ),
        explanation="Assertion failed due to unexpected data",
        suggestion="Verify test data matches expected application state",
        is_test_issue=False,
    ),
    ClassificationPattern(
        category=FailureCategory.AUTH,
        keywords=_compile(
            r"401\s+Unauthorized",
            r"403\s+Forbidden",
            r"authentication\s+failed",
            r"login\s+failed",
            r"session\s+expired",
            r"token\s+invalid",
            r"access\s+denied",
            r"not\s+authenticated",
            r"sign\s*in\s+required",
            r"invalid\s+credentials",
        ),
        explanation="Authentication or authorization failed",
        suggestion="Check authentication state and credentials",
        is_test_issue=False,
    ),
    ClassificationPattern(
        category=FailureCategory.ENV,
        keywords=_compile(
            r"ECONNREFUSED",
            r"ENOTFOUND",
            r"ETIMEDOUT",
            r"connection\s+refused",
            r"ConnectionRefusedError",
            r"network\s+error",
            r"502\s+Bad\s+Gateway",
            r"503\s+Service\s+Unavailable",
            r"504\s+Gateway\s+Timeout",
            r"server\s+error",
            r"browser\s+has\s+been\s+closed",
            r"browser\s+crash",
            r"context\s+closed",
            r"Executable\s+doesn't\s+exist",
        ),
        explanation="Environment or infrastructure issue",
        suggestion="Check application availability and environment configuration",
        is_test_issue=False,
    ),
    ClassificationPattern(
        category=FailureCategory.SCRIPT,
        keywords=_compile(
            r"SyntaxError",
            r"IndentationError",
            r"TypeError",
            r"NameError",
            r"AttributeError",
            r"ImportError|ModuleNotFoundError",
            r"undefined\s+is\s+not",
            r"is\s+not\s+a\s+function",
            r"object\s+is\s+not\s+callable",
            r"Cannot\s+read\s+propert",
            r"'NoneType'\s+object\s+has\s+no\s+attribute",
            r"is\s+not\s+defined",
            r"Unexpected\s+token",
        ),
        explanation="Test script has a code error",
        suggestion="Fix the Python error in the test",
        is_test_issue=True,
    ),
]


def classify_error(error: RunnerError) -> ClassifiedFailure:
    """
    Classify a single runner error.

    Args:
        error: Error reported by the runner

    Returns:
        ClassifiedFailure; ``unknown`` with confidence 0 when nothing matches
    """
    error_text = f"{error.message} {error.stack or ''}"
    best: Optional[ClassificationPattern] = None
    best_keywords: List[str] = []

    for pattern in CLASSIFICATION_PATTERNS:
        matched = [k.pattern for k in pattern.keywords if k.search(error_text)]
        if len(matched) > len(best_keywords):
            best = pattern
            best_keywords = matched

    if best is None:
        return ClassifiedFailure(
            category=FailureCategory.UNKNOWN,
            confidence=0.0,
            explanation="Unable to classify failure",
            suggestion="Review error details manually",
        )

    return ClassifiedFailure(
        category=best.category,
        confidence=min(len(best_keywords) / 3, 1.0),
        explanation=best.explanation,
        suggestion=best.suggestion,
        matched_keywords=best_keywords,
        is_test_issue=best.is_test_issue,
    )


def classify_verify_summary(summary: VerifySummary) -> ClassifiedFailure:
    """Most confident classification among a run's errors."""
    if summary.status is VerifyStatus.PASSED or not summary.errors:
        return ClassifiedFailure(
            category=FailureCategory.UNKNOWN,
            confidence=0.0,
            explanation="Test did not fail or has no errors",
            suggestion="N/A",
        )

    best = None
    for error in summary.errors:
        classification = classify_error(error)
        if best is None or classification.confidence > best.confidence:
            best = classification
    return best


def classify_results(results: Dict[str, VerifySummary]) -> Dict[str, ClassifiedFailure]:
    """Classify every failed run in a ``{test name: summary}`` map."""
    return {
        name: classify_verify_summary(summary)
        for name, summary in results.items()
        if summary.status is not VerifyStatus.PASSED
    }


def get_failure_stats(classifications: Dict[str, ClassifiedFailure]) -> Dict[str, int]:
    stats = {category.value: 0 for category in FailureCategory}
    for classification in classifications.values():
        stats[classification.category.value] += 1
    return stats


def is_category_healable(category: FailureCategory) -> bool:
    return category not in UNHEALABLE_CATEGORIES


def generate_classification_report(classifications: Dict[str, ClassifiedFailure]) -> str:
    """Markdown report of classifications grouped by test."""
    lines = ["# Failure Classification Report", "", "## Summary", ""]

    for category, count in get_failure_stats(classifications).items():
        if count > 0:
            lines.append(f"- {category}: {count}")

    lines.extend(["", "## Detailed Classifications", ""])
    for test_name, classification in classifications.items():
        lines.extend([
            f"### {test_name}",
            "",
            f"- **Category**: {classification.category.value}",
            f"- **Confidence**: {round(classification.confidence * 100)}%",
            f"- **Explanation**: {classification.explanation}",
            f"- **Suggestion**: {classification.suggestion}",
            f"- **Is Test Issue**: {'Yes' if classification.is_test_issue else 'No'}",
            "",
        ])
    return "\n".join(lines)


def normalize_error_message(message: str) -> str:
    """Mask run-specific values (durations, counts, quoted strings)."""
    normalized = re.sub(r"\d+ms", "Xms", message)
    normalized = re.sub(r"\d+ element", "X element", normalized)
    normalized = re.sub(r"timeout of \d+", "timeout of X", normalized, flags=re.IGNORECASE)
    normalized = re.sub(r"'[^']+'", "'X'", normalized)
    normalized = re.sub(r'"[^"]+"', '"X"', normalized)
    return normalized.lower().strip()


def fingerprint_error(category: FailureCategory, message: str,
                      location: Optional[str] = None) -> str:
    """
    Stable 12-hex identifier for "the same error" across attempts.

    Args:
        category: Classified category
        message: Raw error message
        location: ``file:line`` where the error was raised, if known

    Returns:
        First 12 hex digits of an md5 digest
    """
    components = [category.value, normalize_error_message(message)[:100], location or ""]
    return hashlib.md5("|".join(components).encode("utf-8")).hexdigest()[:12]


def to_error_records(summary: VerifySummary) -> List[ErrorRecord]:
    """Fingerprint every error of a run for the breaker and convergence detector."""
    records = []
    for error in summary.errors:
        category = classify_error(error).category
        records.append(ErrorRecord(
            category=category,
            message=error.message,
            fingerprint=fingerprint_error(category, error.message, error.location),
            location=error.location,
        ))
    return records


def extract_line_number(summary: VerifySummary, test_file: str) -> Optional[int]:
    """
    Line of ``test_file`` where the first error surfaced.

    Looks at ``error.location`` (``path:line``) first, then at pytest-style
    ``path:line:`` and Python ``File "path", line N`` frames in the stack.

    Returns:
        1-based line number, or None if the file is not mentioned
    """
    base_name = re.escape(os.path.basename(test_file))
    location_pattern = re.compile(rf"{base_name}:(\d+)")
    frame_pattern = re.compile(rf"File \"[^\"]*{base_name}\", line (\d+)")

    for error in summary.errors:
        for text in (error.location or "", error.stack or "", error.message):
            match = location_pattern.search(text) or frame_pattern.search(text)
            if match:
                return int(match.group(1))
    return None
