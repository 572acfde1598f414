"""
Healing rule engine.

A static table maps failure categories to ordered fix types. The effective
rule set for a failure is the table filtered by category, by the
configuration's allow-list and rule overrides, and always by the fixed
deny-list. Deny-listed fixes (sleeps, removed or weakened assertions, forced
clicks, auth bypass) can never be selected, whatever the configuration says.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from ..core.models import (
    FORBIDDEN_FIXES,
    ClassifiedFailure,
    FailureCategory,
    FixType,
    HealingConfiguration,
    HealingEvaluation,
    HealingRule,
)
from .failure_classifier import is_category_healable

logger = logging.getLogger(__name__)

DEFAULT_HEALING_RULES: List[HealingRule] = [
    HealingRule(
        id="missing-await",
        name="Add missing await",
        categories=[FailureCategory.SELECTOR, FailureCategory.TIMING, FailureCategory.SCRIPT],
        fix_type=FixType.MISSING_AWAIT,
        priority=1,
        description="Await un-awaited page, locator and expect calls in async tests",
    ),
    HealingRule(
        id="selector-refine",
        name="Refine selector",
        categories=[FailureCategory.SELECTOR],
        fix_type=FixType.SELECTOR_REFINE,
        priority=2,
        description="Replace CSS selectors with role, label, text or test id locators",
    ),
    HealingRule(
        id="add-exact",
        name="Add exact matching",
        categories=[FailureCategory.SELECTOR],
        fix_type=FixType.ADD_EXACT,
        priority=3,
        description="Add exact=True to name, label and text locators",
    ),
    HealingRule(
        id="navigation-wait",
        name="Wait for navigation",
        categories=[FailureCategory.NAVIGATION, FailureCategory.TIMING],
        fix_type=FixType.NAVIGATION_WAIT,
        priority=4,
        description="Assert the expected URL or wait for load state after navigation",
    ),
    HealingRule(
        id="web-first-assertion",
        name="Use web-first assertion",
        categories=[FailureCategory.TIMING, FailureCategory.DATA],
        fix_type=FixType.WEB_FIRST_ASSERTION,
        priority=5,
        description="Convert one-shot assert statements into auto-retrying expect() calls",
    ),
    HealingRule(
        id="timeout-increase",
        name="Increase timeout",
        categories=[FailureCategory.TIMING],
        fix_type=FixType.TIMEOUT_INCREASE,
        priority=6,
        enabled=False,
        description="Raise the timeout of the failing call, bounded by max_timeout_increase",
    ),
]

DEFAULT_HEALING_CONFIG = HealingConfiguration()

_RECOMMENDATIONS = {
    FailureCategory.SELECTOR: (
        "Locator failed. Prefer role, label or test id locators over CSS selectors, "
        "and add a data-testid attribute to the element if none is stable."),
    FailureCategory.TIMING: (
        "Timing issue. Replace one-shot checks with web-first assertions and wait "
        "for an explicit page state instead of fixed delays."),
    FailureCategory.NAVIGATION: (
        "Navigation issue. Assert the expected URL after the action that navigates "
        "and verify the base URL configuration."),
    FailureCategory.DATA: (
        "Data mismatch. Check that test data matches the application state and "
        "isolate data per run."),
    FailureCategory.AUTH: (
        "Check authentication state, credentials and storage state setup; "
        "authentication failures are not healed automatically."),
    FailureCategory.ENV: (
        "Environment issue. Check that the application and its dependencies are "
        "reachable before re-running."),
    FailureCategory.SCRIPT: (
        "Test script error. Fix the Python error in the generated test."),
    FailureCategory.UNKNOWN: (
        "Unable to classify the failure. Review the error details and trace manually."),
}

_POST_HEALING = {
    FailureCategory.SELECTOR: (
        "Add a data-testid attribute or an accessible name to the target element "
        "and regenerate the test."),
    FailureCategory.TIMING: (
        "The test may be flaky; consider quarantining it while the timing issue "
        "is investigated."),
    FailureCategory.NAVIGATION: (
        "Review the navigation flow and expected URLs in the journey."),
    FailureCategory.DATA: (
        "Review the test data and expected values in the journey."),
}


def is_fix_forbidden(fix_type: FixType, config: Optional[HealingConfiguration] = None) -> bool:
    if fix_type in FORBIDDEN_FIXES:
        return True
    return config is not None and fix_type in config.forbidden_fixes


def is_fix_allowed(fix_type: FixType, config: Optional[HealingConfiguration] = None) -> bool:
    """Whether the configuration permits ``fix_type``; deny-listed fixes never are."""
    config = config or DEFAULT_HEALING_CONFIG
    if not config.enabled or is_fix_forbidden(fix_type, config):
        return False
    return fix_type in config.allowed_fixes


def _effective_rules(config: HealingConfiguration) -> List[HealingRule]:
    rules = []
    for rule in DEFAULT_HEALING_RULES:
        enabled = config.rule_overrides.get(rule.id, rule.enabled)
        rules.append(rule if enabled == rule.enabled else replace(rule, enabled=enabled))
    return rules


def get_applicable_rules(classification: ClassifiedFailure,
                         config: Optional[HealingConfiguration] = None) -> List[HealingRule]:
    """
    Rules that may fix ``classification`` under ``config``, by priority.

    Args:
        classification: Classified failure
        config: Healing configuration (defaults to DEFAULT_HEALING_CONFIG)

    Returns:
        Enabled, allowed, non-forbidden rules for the category
    """
    config = config or DEFAULT_HEALING_CONFIG
    if not config.enabled or not is_category_healable(classification.category):
        return []

    return sorted(
        (rule for rule in _effective_rules(config)
         if rule.enabled
         and classification.category in rule.categories
         and is_fix_allowed(rule.fix_type, config)),
        key=lambda r: r.priority,
    )


def evaluate_healing(classification: ClassifiedFailure,
                     config: Optional[HealingConfiguration] = None) -> HealingEvaluation:
    """
    Decide whether a failure may be healed.

    Returns:
        HealingEvaluation with the applicable fixes or the refusal reason
    """
    config = config or DEFAULT_HEALING_CONFIG
    if not config.enabled:
        return HealingEvaluation(can_heal=False, reason="Healing is disabled")

    category = classification.category
    if not is_category_healable(category):
        return HealingEvaluation(
            can_heal=False,
            reason=f"Category '{category.value}' cannot be healed automatically. "
                   f"{_RECOMMENDATIONS[category]}")

    rules = get_applicable_rules(classification, config)
    if not rules:
        return HealingEvaluation(
            can_heal=False,
            reason=f"No allowed healing rules for category '{category.value}'")

    return HealingEvaluation(can_heal=True, applicable_fixes=[r.fix_type for r in rules])


def get_next_fix(classification: ClassifiedFailure, attempted_fixes: Iterable[FixType],
                 config: Optional[HealingConfiguration] = None) -> Optional[FixType]:
    """
    First applicable fix not yet attempted.

    Returns:
        FixType, or None when every applicable fix has been tried
    """
    attempted = set(attempted_fixes)
    for rule in get_applicable_rules(classification, config):
        if rule.fix_type not in attempted and rule.fix_type not in FORBIDDEN_FIXES:
            return rule.fix_type
    return None


def get_healing_recommendation(classification: ClassifiedFailure) -> str:
    return _RECOMMENDATIONS[classification.category]


def get_post_healing_recommendation(classification: ClassifiedFailure, attempts: int) -> str:
    """Recommendation once automatic healing has given up."""
    base = f"Healing exhausted after {attempts} attempt{'s' if attempts != 1 else ''}."
    follow_up = _POST_HEALING.get(classification.category, "Manual investigation required.")
    return f"{base} {follow_up}"
