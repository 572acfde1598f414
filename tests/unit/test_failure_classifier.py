"""Unit tests for failure classification and error fingerprints."""

import pytest

from journeyforge.core.models import (
    UNHEALABLE_CATEGORIES,
    ClassifiedFailure,
    FailureCategory,
    RunnerError,
    VerifyStatus,
    VerifySummary,
)
from journeyforge.services.failure_classifier import (
    classify_error,
    classify_results,
    classify_verify_summary,
    extract_line_number,
    fingerprint_error,
    generate_classification_report,
    get_failure_stats,
    is_category_healable,
    normalize_error_message,
    to_error_records,
)
from journeyforge.services.healing_rules import evaluate_healing


class TestClassifyError:
    """Test cases for single-error classification."""

    @pytest.mark.parametrize("message,category", [
        ('Error: strict mode violation: get_by_text("Save") resolved to 2 elements', FailureCategory.SELECTOR),
        ("TimeoutError: page.wait_for_selector: Timeout 5000ms exceeded.", FailureCategory.TIMING),
        ("page.goto: net::ERR_NAME_NOT_RESOLVED at https://app.local/login", FailureCategory.NAVIGATION),
        ("AssertionError: expected 'Paid' to equal 'Pending'", FailureCategory.DATA),
        ("401 Unauthorized: session expired", FailureCategory.AUTH),
        ("connect ECONNREFUSED 127.0.0.1:3000", FailureCategory.ENV),
        ("NameError: name 'page2' is not defined", FailureCategory.SCRIPT),
    ])
    def test_categories(self, message, category):
        """Test representative messages for every category."""
        assert classify_error(RunnerError(message=message)).category is category

    def test_confidence_scales_with_matches(self):
        """Test confidence is matches / 3, capped at 1."""
        navigation = classify_error(RunnerError("page.goto: net::ERR_NAME_NOT_RESOLVED"))
        assert navigation.confidence == 1.0
        assert len(navigation.matched_keywords) == 3

        env = classify_error(RunnerError("connect ECONNREFUSED 127.0.0.1:3000"))
        assert env.confidence == pytest.approx(1 / 3)

    def test_stack_is_searched(self):
        """Test signatures in the stack count too."""
        error = RunnerError(message="Test failed", stack="NameError: name 'x' is not defined")
        assert classify_error(error).category is FailureCategory.SCRIPT

    def test_unknown(self):
        """Test unmatched text is unknown with zero confidence."""
        result = classify_error(RunnerError("Something odd happened"))
        assert result.category is FailureCategory.UNKNOWN
        assert result.confidence == 0.0
        assert result.matched_keywords == []

    def test_test_issue_flag(self):
        """Test selector failures are flagged as test issues, auth failures are not."""
        assert classify_error(RunnerError('strict mode violation: get_by_text("a")')).is_test_issue
        assert not classify_error(RunnerError("401 Unauthorized")).is_test_issue

    def test_healable_categories(self):
        """Test auth, env and unknown are never healable."""
        assert is_category_healable(FailureCategory.SELECTOR)
        for category in (FailureCategory.AUTH, FailureCategory.ENV, FailureCategory.UNKNOWN):
            assert not is_category_healable(category)

    def test_rule_engine_agrees_on_healable_categories(self):
        """Test the rule engine refuses exactly the categories the classifier marks unhealable."""
        for category in FailureCategory:
            evaluation = evaluate_healing(ClassifiedFailure(category=category, confidence=0.9,
                                                            explanation="test", suggestion="test"))
            if category in UNHEALABLE_CATEGORIES:
                assert not is_category_healable(category)
                assert not evaluation.can_heal
            else:
                assert is_category_healable(category)


class TestSummaryClassification:
    """Test cases for run-level classification."""

    def test_passed_summary(self, make_summary):
        """Test a passing run is not classified."""
        result = classify_verify_summary(make_summary())
        assert result.category is FailureCategory.UNKNOWN
        assert result.suggestion == "N/A"

    def test_most_confident_error_wins(self, make_summary):
        """Test the most confident error decides the run."""
        summary = make_summary(
            "connect ECONNREFUSED 127.0.0.1:3000",
            "page.goto: net::ERR_NAME_NOT_RESOLVED",
        )
        assert classify_verify_summary(summary).category is FailureCategory.NAVIGATION

    def test_classify_results_and_report(self, make_summary):
        """Test batch classification skips passing runs."""
        results = {
            "test_login": make_summary('strict mode violation: get_by_text("Save") resolved to 2 elements'),
            "test_home": make_summary(),
        }
        classifications = classify_results(results)
        assert list(classifications) == ["test_login"]

        stats = get_failure_stats(classifications)
        assert stats["selector"] == 1
        assert sum(stats.values()) == 1

        report = generate_classification_report(classifications)
        assert "### test_login" in report
        assert "- selector: 1" in report
        assert "**Is Test Issue**: Yes" in report


class TestFingerprints:
    """Test cases for error normalization and fingerprints."""

    def test_normalize_error_message(self):
        """Test durations and quoted values are masked."""
        assert normalize_error_message("Timeout 5000ms exceeded waiting for 'Save'") == \
            "timeout xms exceeded waiting for 'x'"
        assert normalize_error_message('Locator resolved to 3 elements "a"') == \
            'locator resolved to x elements "x"'

    def test_fingerprint_ignores_run_specific_values(self):
        """Test the same error with different timings has one fingerprint."""
        first = fingerprint_error(FailureCategory.TIMING, "Timeout 5000ms exceeded")
        second = fingerprint_error(FailureCategory.TIMING, "Timeout 10000ms exceeded")
        assert first == second
        assert len(first) == 12

    def test_fingerprint_depends_on_location_and_category(self):
        """Test location and category are part of the identity."""
        base = fingerprint_error(FailureCategory.TIMING, "Timeout 5000ms exceeded", "test_a.py:10")
        assert base != fingerprint_error(FailureCategory.TIMING, "Timeout 5000ms exceeded", "test_a.py:11")
        assert base != fingerprint_error(FailureCategory.SELECTOR, "Timeout 5000ms exceeded", "test_a.py:10")

    def test_to_error_records(self, make_summary):
        """Test every error is classified and fingerprinted."""
        summary = make_summary("401 Unauthorized", "Something odd happened", location="test_a.py:3")
        records = to_error_records(summary)

        assert [r.category for r in records] == [FailureCategory.AUTH, FailureCategory.UNKNOWN]
        assert records[0].fingerprint == fingerprint_error(FailureCategory.AUTH, "401 Unauthorized", "test_a.py:3")


class TestExtractLineNumber:
    """Test cases for locating the failing line."""

    def test_from_location(self):
        """Test the file:line location wins."""
        summary = VerifySummary(status=VerifyStatus.FAILED,
                                errors=[RunnerError("boom", location="tests/test_login.py:42")])
        assert extract_line_number(summary, "/work/tests/test_login.py") == 42

    def test_from_python_frame(self):
        """Test Python traceback frames in the stack."""
        stack = 'Traceback (most recent call last):\n  File "/tmp/run/test_login.py", line 17, in test_login\n'
        summary = VerifySummary(status=VerifyStatus.FAILED, errors=[RunnerError("boom", stack=stack)])
        assert extract_line_number(summary, "test_login.py") == 17

    def test_other_file(self):
        """Test errors in other files give no line."""
        summary = VerifySummary(status=VerifyStatus.FAILED,
                                errors=[RunnerError("boom", location="conftest.py:9")])
        assert extract_line_number(summary, "test_login.py") is None
