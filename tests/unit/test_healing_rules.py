"""Unit tests for the healing rule engine."""

import pytest

from journeyforge.core.models import (
    ClassifiedFailure,
    FailureCategory,
    FixType,
    HealingConfiguration,
)
from journeyforge.services.healing_rules import (
    DEFAULT_HEALING_RULES,
    evaluate_healing,
    get_applicable_rules,
    get_healing_recommendation,
    get_next_fix,
    get_post_healing_recommendation,
    is_fix_allowed,
    is_fix_forbidden,
)


def classified(category: FailureCategory) -> ClassifiedFailure:
    return ClassifiedFailure(category=category, confidence=0.9,
                             explanation="test", suggestion="test")


class TestHealingRules:
    """Test cases for rule selection."""

    def test_rule_ids_unique(self):
        """Test every default rule has its own id and fix type."""
        assert len({r.id for r in DEFAULT_HEALING_RULES}) == len(DEFAULT_HEALING_RULES)
        assert len({r.fix_type for r in DEFAULT_HEALING_RULES}) == len(DEFAULT_HEALING_RULES)

    def test_selector_rules_by_priority(self):
        """Test selector failures get await, refine and exact fixes in order."""
        fixes = [r.fix_type for r in get_applicable_rules(classified(FailureCategory.SELECTOR))]
        assert fixes == [FixType.MISSING_AWAIT, FixType.SELECTOR_REFINE, FixType.ADD_EXACT]

    def test_timeout_increase_off_by_default(self):
        """Test the timeout rule needs both an override and an allow-list entry."""
        fixes = [r.fix_type for r in get_applicable_rules(classified(FailureCategory.TIMING))]
        assert fixes == [FixType.MISSING_AWAIT, FixType.NAVIGATION_WAIT, FixType.WEB_FIRST_ASSERTION]

        override_only = HealingConfiguration(rule_overrides={"timeout-increase": True})
        assert FixType.TIMEOUT_INCREASE not in [
            r.fix_type for r in get_applicable_rules(classified(FailureCategory.TIMING), override_only)]

        config = HealingConfiguration(
            allowed_fixes=HealingConfiguration().allowed_fixes + [FixType.TIMEOUT_INCREASE],
            rule_overrides={"timeout-increase": True},
        )
        fixes = [r.fix_type for r in get_applicable_rules(classified(FailureCategory.TIMING), config)]
        assert fixes[-1] is FixType.TIMEOUT_INCREASE

    def test_override_disables_rule(self):
        """Test rule overrides can switch a default rule off."""
        config = HealingConfiguration(rule_overrides={"selector-refine": False})
        fixes = [r.fix_type for r in get_applicable_rules(classified(FailureCategory.SELECTOR), config)]
        assert FixType.SELECTOR_REFINE not in fixes

    @pytest.mark.parametrize("category", [FailureCategory.AUTH, FailureCategory.ENV, FailureCategory.UNKNOWN])
    def test_unhealable_categories_have_no_rules(self, category):
        """Test non-healable categories never get rules."""
        assert get_applicable_rules(classified(category)) == []

    def test_forbidden_fixes_never_allowed(self):
        """Test the deny-list beats the allow-list."""
        config = HealingConfiguration(allowed_fixes=[FixType.FORCE_CLICK, FixType.ADD_EXACT], forbidden_fixes=[])
        assert is_fix_forbidden(FixType.FORCE_CLICK)
        assert not is_fix_allowed(FixType.FORCE_CLICK, config)
        assert is_fix_allowed(FixType.ADD_EXACT, config)

    def test_configured_forbidden_fix(self):
        """Test the configuration can forbid additional fixes."""
        config = HealingConfiguration(forbidden_fixes=[FixType.ADD_EXACT])
        assert is_fix_forbidden(FixType.ADD_EXACT, config)
        assert not is_fix_allowed(FixType.ADD_EXACT, config)

    def test_get_next_fix(self):
        """Test fixes are handed out once each, in priority order."""
        failure = classified(FailureCategory.SELECTOR)
        assert get_next_fix(failure, []) is FixType.MISSING_AWAIT
        assert get_next_fix(failure, [FixType.MISSING_AWAIT]) is FixType.SELECTOR_REFINE
        assert get_next_fix(failure, [FixType.MISSING_AWAIT, FixType.SELECTOR_REFINE, FixType.ADD_EXACT]) is None


class TestEvaluateHealing:
    """Test cases for heal / do-not-heal decisions."""

    def test_healable(self):
        """Test a selector failure can be healed."""
        evaluation = evaluate_healing(classified(FailureCategory.SELECTOR))
        assert evaluation.can_heal
        assert evaluation.applicable_fixes[0] is FixType.MISSING_AWAIT
        assert evaluation.to_dict()["applicableFixes"][0] == "missing-await"

    def test_disabled(self):
        """Test the global switch."""
        evaluation = evaluate_healing(classified(FailureCategory.SELECTOR), HealingConfiguration(enabled=False))
        assert not evaluation.can_heal
        assert evaluation.reason == "Healing is disabled"

    def test_auth_refused_with_recommendation(self):
        """Test auth failures are refused with guidance."""
        evaluation = evaluate_healing(classified(FailureCategory.AUTH))
        assert not evaluation.can_heal
        assert evaluation.reason.startswith("Category 'auth' cannot be healed automatically.")
        assert "credentials" in evaluation.reason

    def test_no_allowed_rules(self):
        """Test a healable category whose fixes are all disallowed."""
        config = HealingConfiguration(allowed_fixes=[FixType.ADD_EXACT])
        evaluation = evaluate_healing(classified(FailureCategory.DATA), config)
        assert not evaluation.can_heal
        assert evaluation.reason == "No allowed healing rules for category 'data'"


class TestRecommendations:
    """Test cases for human-facing recommendations."""

    def test_recommendation_per_category(self):
        """Test every category has guidance."""
        for category in FailureCategory:
            assert get_healing_recommendation(classified(category))

    def test_post_healing_recommendation(self):
        """Test the exhausted message and its pluralization."""
        assert get_post_healing_recommendation(classified(FailureCategory.SELECTOR), 1).startswith(
            "Healing exhausted after 1 attempt.")
        assert "3 attempts." in get_post_healing_recommendation(classified(FailureCategory.TIMING), 3)
        assert get_post_healing_recommendation(classified(FailureCategory.SCRIPT), 2).endswith(
            "Manual investigation required.")
