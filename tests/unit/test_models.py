"""Unit tests for action and pattern data models."""

from datetime import datetime

import pytest

from journeyforge.core.models import (
    ACTION_FIELDS,
    Action,
    ActionType,
    LearnedPattern,
    LocatorSpec,
    LocatorStrategy,
    PatternLayer,
    StepHints,
    ToastType,
    ValueSpec,
    ValueType,
    assert_exhaustive,
)


class TestAction:
    """Test cases for the Action variant."""

    def test_required_fields_enforced(self):
        """Test each action type checks its payload."""
        with pytest.raises(ValueError, match="requires fields: locator, value"):
            Action(type=ActionType.FILL)
        with pytest.raises(ValueError, match="requires fields: url"):
            Action(type="goto")

    def test_type_coerced_from_string(self):
        """Test the tag may be given by its wire name."""
        action = Action(type="reload")
        assert action.type is ActionType.RELOAD
        assert not action.is_blocked
        assert not action.is_assertion

    def test_blocked_sentinel(self):
        """Test the blocked constructor."""
        action = Action.blocked("No pattern matched", "do something")
        assert action.is_blocked
        assert action.to_dict() == {"type": "blocked", "reason": "No pattern matched",
                                    "sourceText": "do something"}

    def test_dict_form(self):
        """Test camelCase keys and nested specs on the wire."""
        action = Action(type=ActionType.EXPECT_TOAST, toast_type=ToastType.SUCCESS,
                        message="Saved", timeout=5000)
        assert action.is_assertion
        assert action.to_dict() == {"type": "expectToast", "toastType": "success",
                                    "message": "Saved", "timeout": 5000}

        fill = Action(type=ActionType.FILL, locator=LocatorSpec(LocatorStrategy.LABEL, "Email"),
                      value=ValueSpec(ValueType.ACTOR, "email"))
        data = fill.to_dict()
        assert data["locator"] == {"strategy": "label", "value": "Email"}
        assert data["value"] == {"type": "actor", "value": "email"}
        assert Action.from_dict(data) == fill

    def test_sequences_become_tuples(self):
        """Test list payloads are frozen so actions stay hashable."""
        action = Action(type=ActionType.UPLOAD, locator=LocatorSpec(LocatorStrategy.LABEL, "File"),
                        files=["a.pdf"])
        assert action.files == ("a.pdf",)
        assert hash(action) == hash(Action.from_dict(action.to_dict()))

    def test_dispatch_tables_complete(self):
        """Test the field table covers every action type."""
        assert set(ACTION_FIELDS) == set(ActionType)
        with pytest.raises(TypeError, match="PARTIAL has no handler"):
            assert_exhaustive({ActionType.GOTO: None}, "PARTIAL")


class TestLocatorSpec:
    """Test cases for LocatorSpec equality."""

    def test_option_order_irrelevant(self):
        """Test specs compare by canonical form."""
        a = LocatorSpec(LocatorStrategy.ROLE, "button", {"name": "Save", "exact": True})
        b = LocatorSpec("role", "button", {"exact": True, "name": "Save"})
        assert a == b
        assert len({a, b}) == 1

    def test_none_options_dropped(self):
        """Test unset options do not change identity."""
        assert LocatorSpec(LocatorStrategy.TEXT, "Hi", {"exact": None}) == LocatorSpec(LocatorStrategy.TEXT, "Hi")


class TestStepHints:
    """Test cases for StepHints."""

    def test_flags(self):
        """Test locator and emptiness checks."""
        assert StepHints().is_empty
        assert not StepHints(signal="saved").has_locator_hints
        hints = StepHints(testid="login-btn", exact=True)
        assert hints.has_locator_hints
        assert hints.to_dict() == {"testid": "login-btn", "exact": True}


class TestLearnedPattern:
    """Test cases for the on-disk pattern form."""

    def test_from_dict_tolerates_utc_suffix(self):
        """Test timestamps written with a Z suffix load."""
        pattern = LearnedPattern.from_dict({
            "id": "LP001",
            "originalText": "Click Save",
            "normalizedText": "click save",
            "mappedAction": {"type": "click", "locator": {"strategy": "testid", "value": "save"}},
            "successCount": 3,
            "failCount": 1,
            "lastUsed": "2026-01-02T03:04:05Z",
            "layer": "framework",
        })
        assert pattern.last_used == datetime(2026, 1, 2, 3, 4, 5)
        assert pattern.layer is PatternLayer.FRAMEWORK
        assert pattern.success_rate == 0.75
        assert pattern.promoted_at is None
        assert "promotedAt" not in pattern.to_dict()

    def test_layer_priority(self):
        """Test app-specific patterns outrank broader layers."""
        assert PatternLayer.APP_SPECIFIC.priority > PatternLayer.FRAMEWORK.priority > PatternLayer.UNIVERSAL.priority
