"""Unit tests for the pytest runner adapter."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from journeyforge.core.exceptions import TestRunnerError
from journeyforge.core.models import VerifyStatus
from journeyforge.services.pytest_runner import PytestRunner, parse_junit_xml

FAILING_REPORT = """<?xml version="1.0" encoding="utf-8"?>
<testsuites>
  <testsuite name="pytest" errors="0" failures="1" skipped="1" tests="3" time="2.5">
    <testcase classname="tests.test_login" name="test_login" time="1.2">
      <failure message="TimeoutError: Locator.click: Timeout 30000ms exceeded.">page = &lt;Page&gt;

    def test_login(page: Page):
        page.goto("/login")
&gt;       page.locator(".submit-btn").click()
E       TimeoutError: Locator.click: Timeout 30000ms exceeded.

tests/test_login.py:6: TimeoutError</failure>
    </testcase>
    <testcase classname="tests.test_login" name="test_logout" time="0.8"/>
    <testcase classname="tests.test_login" name="test_skipped" time="0.0">
      <skipped message="not ready"/>
    </testcase>
  </testsuite>
</testsuites>
"""

PASSING_REPORT = """<?xml version="1.0" encoding="utf-8"?>
<testsuite name="pytest" errors="0" failures="0" tests="1" time="0.4">
  <testcase classname="tests.test_login" name="test_login" time="0.4"/>
</testsuite>
"""


class TestParseJunitXml:
    """Test cases for JUnit report parsing."""

    def test_failing_report(self, tmp_path):
        """Test failures carry message, location and snippet."""
        report = tmp_path / "report.xml"
        report.write_text(FAILING_REPORT)

        summary = parse_junit_xml(str(report))

        assert summary.status is VerifyStatus.FAILED
        assert summary.passed == 1
        assert summary.failed == 1
        assert summary.duration == pytest.approx(2.5)
        assert summary.artifacts == {"junit": str(report)}

        error = summary.errors[0]
        assert error.message == "TimeoutError: Locator.click: Timeout 30000ms exceeded."
        assert error.location == "tests/test_login.py:6"
        assert error.snippet == 'page.locator(".submit-btn").click()'
        assert error.test_name == "tests.test_login::test_login"

    def test_passing_single_suite(self, tmp_path):
        """Test a bare testsuite root."""
        report = tmp_path / "report.xml"
        report.write_text(PASSING_REPORT)

        summary = parse_junit_xml(str(report))
        assert summary.is_passing
        assert summary.passed == 1
        assert summary.errors == []

    def test_message_falls_back_to_last_stack_line(self, tmp_path):
        """Test errors without a message attribute."""
        report = tmp_path / "report.xml"
        report.write_text('<testsuite><testcase name="t"><error>setup\nfixture "actor" not found</error>'
                          '</testcase></testsuite>')
        summary = parse_junit_xml(str(report))
        assert summary.errors[0].message == 'fixture "actor" not found'
        assert summary.errors[0].location is None

    def test_missing_or_corrupt_report(self, tmp_path):
        """Test unreadable reports raise TestRunnerError."""
        with pytest.raises(TestRunnerError):
            parse_junit_xml(str(tmp_path / "missing.xml"))

        corrupt = tmp_path / "corrupt.xml"
        corrupt.write_text("<testsuite>")
        with pytest.raises(TestRunnerError):
            parse_junit_xml(str(corrupt))


class TestPytestRunner:
    """Test cases for PytestRunner.run."""

    @pytest.fixture
    def runner(self, tmp_path):
        return PytestRunner(timeout=30, extra_args=["--browser", "firefox"],
                            report_dir=str(tmp_path / "reports"), python_executable="python3")

    def fake_run(self, report_text, returncode=1, stderr=""):
        """subprocess.run stand-in that writes the JUnit report pytest would."""
        def run(command, **kwargs):
            if report_text is not None:
                path = next(arg for arg in command if arg.startswith("--junitxml=")).split("=", 1)[1]
                with open(path, "w") as f:
                    f.write(report_text)
            return Mock(returncode=returncode, stdout="", stderr=stderr)
        return run

    def test_build_command(self, runner):
        """Test the pytest command line."""
        command = runner.build_command("tests/test_login.py", "/tmp/r.xml")
        assert command == ["python3", "-m", "pytest", "tests/test_login.py", "--junitxml=/tmp/r.xml",
                           "-q", "-p", "no:cacheprovider", "--browser", "firefox"]

    def test_run_failing_test(self, runner):
        """Test a failing run is parsed from its report."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=self.fake_run(FAILING_REPORT)) as run:
            summary = runner.run("tests/test_login.py")

        assert summary.status is VerifyStatus.FAILED
        assert summary.errors[0].location == "tests/test_login.py:6"
        assert run.call_args.kwargs["timeout"] == 30

    def test_run_passing_test(self, runner):
        """Test a clean run passes."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=self.fake_run(PASSING_REPORT, returncode=0)):
            assert runner.run("tests/test_login.py").is_passing

    def test_unexpected_exit_code_is_error(self, runner):
        """Test an internal pytest error overrides a passing report."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=self.fake_run(PASSING_REPORT, returncode=3)):
            summary = runner.run("tests/test_login.py")
        assert summary.status is VerifyStatus.ERROR
        assert summary.errors[-1].message == "pytest exited with code 3"

    def test_missing_report_is_error(self, runner):
        """Test collection errors without a report."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=self.fake_run(None, returncode=4, stderr="usage\nERROR: file not found")):
            summary = runner.run("tests/missing.py")
        assert summary.status is VerifyStatus.ERROR
        assert summary.errors[0].message == "ERROR: file not found"

    def test_timeout_is_error(self, runner):
        """Test a hung run is reported, not raised."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(cmd="pytest", timeout=30)):
            summary = runner.run("tests/test_login.py")
        assert summary.status is VerifyStatus.ERROR
        assert summary.errors[0].message == "Test run timed out after 30s"

    def test_launch_failure_raises(self, runner):
        """Test a missing interpreter raises TestRunnerError."""
        with patch("journeyforge.services.pytest_runner.subprocess.run",
                   side_effect=FileNotFoundError("python3")):
            with pytest.raises(TestRunnerError):
                runner.run("tests/test_login.py")

    def test_verify_fn(self, runner):
        """Test the zero-argument verify callable."""
        with patch.object(runner, "run", return_value="summary") as run:
            assert runner.verify_fn("tests/test_login.py")() == "summary"
        run.assert_called_once_with("tests/test_login.py")
