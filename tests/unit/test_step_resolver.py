"""Unit tests for the fuzzy tier and the unified step resolver."""

import pytest
from unittest.mock import Mock

from journeyforge.core.exceptions import PatternStoreError
from journeyforge.core.models import (
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    ResolutionSource,
    Step,
    StepHints,
)
from journeyforge.services.fuzzy_matcher import (
    FuzzyMatcher,
    create_generic_action,
    examples_for_pattern,
    extract_target,
)
from journeyforge.services.pattern_library import get_pattern
from journeyforge.services.step_resolver import (
    ResolutionStats,
    ResolverConfig,
    StepResolver,
    blocked_reason,
    suggest_rewrite,
)


class TestFuzzyMatcher:
    """Test cases for the example-corpus fuzzy tier."""

    @pytest.fixture
    def matcher(self):
        return FuzzyMatcher()

    def test_examples_for_pattern(self):
        """Test patterns pick up example families by name fragment."""
        examples = examples_for_pattern(get_pattern("go-back"))
        assert examples == []
        assert "click the submit button" in examples_for_pattern(get_pattern("click-on-element"))

    def test_exact_example_synthesizes_action(self, matcher):
        """Test a corpus phrasing resolves even when the pattern regex cannot extract."""
        match = matcher.match("tap the menu icon")
        assert match is not None
        assert match.similarity == 1.0
        assert match.action.type is ActionType.CLICK
        assert match.action.locator == LocatorSpec(LocatorStrategy.TEXT, "menu icon")
        assert match.pattern_name.endswith(":fuzzy")
        assert match.matched_example == "tap the menu icon"

    def test_no_match_below_threshold(self, matcher):
        """Test unrelated text is rejected."""
        assert matcher.match("User does the thing") is None

    def test_extract_target(self):
        """Test element guesses from step text."""
        assert extract_target("click the save button") == "save"
        assert extract_target("type hello into the search field") == "search"
        assert extract_target("nothing here") is None

    def test_create_generic_action(self):
        """Test heuristic actions from quoted strings."""
        fill = create_generic_action(ActionType.FILL, "put 'Email' as 'a@b.c'")
        assert fill.locator.value == "Email"
        assert fill.value.value == "a@b.c"
        assert create_generic_action(ActionType.WAIT_FOR_TIMEOUT, "hold 2 seconds").ms == 2000
        assert create_generic_action(ActionType.WAIT_FOR_TIMEOUT, "hold 250 ms").ms == 250
        assert create_generic_action(ActionType.CALL_MODULE, "whatever") is None

    def test_stats(self, matcher):
        """Test corpus statistics."""
        stats = matcher.stats()
        assert stats["totalExamples"] > 0
        assert stats["patternsWithExamples"] == len(matcher.corpus)


class TestStepResolver:
    """Test cases for the tier chain."""

    @pytest.fixture
    def resolver(self, store):
        return StepResolver(store=store)

    def test_core_tier(self, resolver):
        """Test a core pattern hit."""
        result = resolver.resolve("User clicks the 'Submit' button")
        assert result.source is ResolutionSource.CORE
        assert result.pattern_name == "click-button-quoted"
        assert result.confidence == 1.0
        assert result.action.locator == LocatorSpec(LocatorStrategy.ROLE, "button", {"name": "Submit"})

    def test_core_tier_after_light_normalization(self, resolver):
        """Test that past-tense phrasing matches after normalization."""
        result = resolver.resolve("User clicked the 'Submit' button")
        assert result.source is ResolutionSource.CORE
        assert result.normalized_text == "click the 'Submit' button"

    def test_visibility_step(self, resolver):
        """Test a text visibility assertion."""
        result = resolver.resolve("User should see 'Welcome back'")
        assert result.action.type is ActionType.EXPECT_VISIBLE
        assert result.action.locator == LocatorSpec(LocatorStrategy.TEXT, "Welcome back")

    def test_blocked_step(self, resolver):
        """Test that unresolvable text produces a blocked action, never an exception."""
        result = resolver.resolve("User does the thing")
        assert result.source is ResolutionSource.BLOCKED
        assert result.confidence == 0.0
        assert result.action.is_blocked
        assert result.action.source_text == "User does the thing"
        assert result.action.reason.startswith('Could not map step: "User does the thing"')
        assert result.action.suggestion

    def test_nul_characters_in_step(self, resolver):
        """Test text that looks like a quote placeholder resolves without raising."""
        result = resolver.resolve("User clicks \x000\x00")
        assert result.source in set(ResolutionSource)
        assert result.step.text == "User clicks \x000\x00"

    def test_inline_hints_override_core_locator(self, resolver):
        """Test hints are applied to core matches."""
        result = resolver.resolve("User clicks the 'Submit' button (testid=submit-btn)")
        assert result.source is ResolutionSource.CORE
        assert result.action.locator == LocatorSpec(LocatorStrategy.TESTID, "submit-btn")
        assert result.step.text == "User clicks the 'Submit' button (testid=submit-btn)"

    def test_hints_only_tier(self, resolver):
        """Test a step resolved from hints alone."""
        result = resolver.resolve("Do the thing (testid=thing)")
        assert result.source is ResolutionSource.HINTS
        assert result.confidence == 0.5
        assert result.action == Action(ActionType.CLICK, locator=LocatorSpec(LocatorStrategy.TESTID, "thing"))

    def test_explicit_hints_win_over_inline(self, resolver):
        """Test Step.hints override hints written in the text."""
        result = resolver.resolve(Step("Click it (testid=a)", StepHints(testid="b")))
        assert result.action.locator.value == "b"

    def test_learned_tier(self, resolver, store):
        """Test a learned mapping resolves text the core patterns miss."""
        action = Action(ActionType.CLICK, locator=LocatorSpec(LocatorStrategy.TESTID, "thing"))
        pattern = store.record_success("User does the thing", action, "JRN-1")

        result = resolver.resolve("User does the thing")
        assert result.source is ResolutionSource.LEARNED
        assert result.pattern_id == pattern.id
        assert result.action == action
        assert result.confidence == pytest.approx(0.5)

    def test_learned_hit_stable_across_journeys(self, resolver, store):
        """Test resolving a learned step leaves the store untouched."""
        action = Action(ActionType.CLICK, locator=LocatorSpec(LocatorStrategy.TESTID, "thing"))
        store.record_success("User does the thing", action, "JRN-1")

        for journey_id in ("JRN-2", "JRN-3", "JRN-4"):
            resolution = resolver.resolve_journey(journey_id, ["User does the thing"])
            assert resolution.steps[0].source is ResolutionSource.LEARNED
            assert resolution.steps[0].action == action

        pattern = store.load_patterns(bypass_cache=True)[0]
        assert pattern.success_count == 1
        assert pattern.source_journeys == ["JRN-1"]

    def test_learned_tier_disabled(self, store):
        """Test use_learned=False skips the store."""
        action = Action(ActionType.CLICK, locator=LocatorSpec(LocatorStrategy.TESTID, "thing"))
        store.record_success("User does the thing", action, "JRN-1")
        resolver = StepResolver(store=store, config=ResolverConfig(use_learned=False))
        assert resolver.resolve("User does the thing").source is ResolutionSource.BLOCKED

    def test_store_errors_skip_tier(self):
        """Test a failing store never breaks resolution."""
        broken = Mock()
        broken.match.side_effect = PatternStoreError("disk on fire")
        resolver = StepResolver(store=broken)
        assert resolver.resolve("User does the thing").source is ResolutionSource.BLOCKED

    def test_resolve_journey_stats(self, resolver):
        """Test per-tier statistics for a journey."""
        resolution = resolver.resolve_journey("JRN-42", [
            "User navigates to /login",
            "User clicks the 'Submit' button",
            "User does the thing",
        ])
        assert resolution.stats.core == 2
        assert resolution.stats.blocked == 1
        assert resolution.stats.resolution_rate == pytest.approx(2 / 3)
        assert [s.step.text for s in resolution.blocked_steps] == ["User does the thing"]
        assert resolution.to_dict()["stats"]["total"] == 3

    def test_explain(self, resolver):
        """Test the debugging view lists tier candidates."""
        explanation = resolver.explain("User clicks the 'Submit' button")
        patterns = [c["pattern"] for c in explanation["core"]]
        assert "click-button-quoted" in patterns
        assert explanation["learned"] is None
        assert explanation["resolution"]["source"] == "core"


class TestResolverHelpers:
    """Test cases for blocked-step messages."""

    def test_suggest_rewrite(self):
        """Test suggestions keyed on verbs in the text."""
        assert "navigates" in suggest_rewrite("go somewhere")
        assert "clicks" in suggest_rewrite("hit that button")
        assert "Could not determine intent" in suggest_rewrite("xyz")

    def test_suggest_rewrite_matches_whole_words(self):
        """Test verbs buried inside other words do not pick a suggestion."""
        assert "Could not determine intent" in suggest_rewrite("check the logs")
        assert "Could not determine intent" in suggest_rewrite("approve the prototype")
        assert "Could not determine intent" in suggest_rewrite("foresee expression results")
        assert "navigates" in suggest_rewrite("User goes home")
        assert "enters" in suggest_rewrite("type the code")

    def test_blocked_reason_mentions_findings(self):
        """Test the reason lists quoted text and element nouns."""
        reason = blocked_reason("Frobnicate the 'Widget' dropdown")
        assert "'Widget'" in reason
        assert "dropdown" in reason

    def test_stats_record(self):
        """Test counting by resolution source."""
        stats = ResolutionStats()
        stats.record(ResolutionSource.FUZZY)
        stats.record(ResolutionSource.BLOCKED)
        assert stats.total == 2
        assert stats.resolution_rate == 0.5
