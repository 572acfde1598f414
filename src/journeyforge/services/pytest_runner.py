"""
Runner adapter: verifies a generated test file by running pytest on it.

The run happens in a subprocess with a JUnit XML report; the report is
parsed into a ``VerifySummary`` the failure classifier and the healing loop
consume. A run that exceeds its timeout is reported with status ``error``.
"""

import os
import re
import subprocess
import sys
import tempfile
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..core.config import settings
from ..core.exceptions import TestRunnerError
from ..core.logging_config import get_component_logger
from ..core.models import RunnerError, VerifyStatus, VerifySummary

logger = get_component_logger("runner")

# pytest long-repr location line, e.g. "tests/test_login.py:42: TimeoutError"
_LOCATION_PATTERN = re.compile(r"^(?P<file>[^\s:]+\.py):(?P<line>\d+):", re.MULTILINE)


def _location_from_stack(stack: str) -> Optional[str]:
    matches = list(_LOCATION_PATTERN.finditer(stack or ""))
    if not matches:
        return None
    # The innermost frame of the test module is reported last.
    last = matches[-1]
    return f"{last.group('file')}:{last.group('line')}"


def _snippet_from_stack(stack: str) -> Optional[str]:
    for line in (stack or "").splitlines():
        if line.startswith(">"):
            return line[1:].strip()
    return None


def parse_junit_xml(report_path: str) -> VerifySummary:
    """
    Convert a pytest JUnit XML report into a VerifySummary.

    Args:
        report_path: Path to the ``--junitxml`` report

    Returns:
        VerifySummary; ``failed`` when any test failed or errored

    Raises:
        TestRunnerError: If the report is missing or unparseable
    """
    try:
        root = ET.parse(report_path).getroot()
    except ET.ParseError as e:
        raise TestRunnerError(f"Failed to parse JUnit report {report_path}: {e}") from e
    except OSError as e:
        raise TestRunnerError(f"JUnit report not found: {report_path}") from e

    suites = [root] if root.tag == "testsuite" else root.findall("testsuite")
    errors: List[RunnerError] = []
    passed = failed = 0
    duration = 0.0

    for suite in suites:
        duration += float(suite.get("time", 0) or 0)
        for case in suite.iter("testcase"):
            test_name = "::".join(p for p in (case.get("classname"), case.get("name")) if p)
            problem = case.find("failure")
            if problem is None:
                problem = case.find("error")
            if problem is None:
                if case.find("skipped") is None:
                    passed += 1
                continue

            failed += 1
            stack = problem.text or ""
            message = problem.get("message")
            if not message:
                stack_lines = stack.strip().splitlines()
                message = stack_lines[-1] if stack_lines else "Test failed"
            errors.append(RunnerError(
                message=message,
                stack=stack,
                location=_location_from_stack(stack),
                snippet=_snippet_from_stack(stack),
                test_name=test_name,
            ))

    status = VerifyStatus.FAILED if failed else VerifyStatus.PASSED
    return VerifySummary(
        status=status,
        errors=errors,
        artifacts={"junit": str(report_path)},
        report_path=str(report_path),
        duration=duration,
        passed=passed,
        failed=failed,
    )


class PytestRunner:
    """Runs one test file through pytest and reports a VerifySummary."""

    def __init__(self, timeout: Optional[int] = None, extra_args: Optional[Sequence[str]] = None,
                 report_dir: Optional[str] = None, python_executable: Optional[str] = None):
        """
        Args:
            timeout: Seconds before the run is abandoned (defaults to RUNNER_TIMEOUT)
            extra_args: Additional pytest arguments, e.g. ``["--browser", "firefox"]``
            report_dir: Where JUnit reports are written (defaults to a temp dir)
            python_executable: Interpreter used to launch pytest
        """
        self.timeout = timeout or settings.RUNNER_TIMEOUT
        self.extra_args = list(extra_args or [])
        self.report_dir = Path(report_dir) if report_dir else Path(tempfile.gettempdir()) / "journeyforge_reports"
        self.python_executable = python_executable or sys.executable

    def build_command(self, test_file: str, report_path: str) -> List[str]:
        return [self.python_executable, "-m", "pytest", test_file,
                f"--junitxml={report_path}", "-q", "-p", "no:cacheprovider"] + self.extra_args

    def run(self, test_file: str) -> VerifySummary:
        """
        Run ``test_file`` once.

        Returns:
            VerifySummary; status ``error`` on timeout or when pytest produced
            no report (collection or usage errors)

        Raises:
            TestRunnerError: If pytest cannot be launched at all
        """
        self.report_dir.mkdir(parents=True, exist_ok=True)
        report_path = self.report_dir / f"{Path(test_file).stem}-{int(time.time() * 1000)}.xml"
        command = self.build_command(test_file, str(report_path))

        logger.log_operation_start("pytest_run", test_file=test_file)
        start = time.time()
        try:
            completed = subprocess.run(command, capture_output=True, text=True,
                                       timeout=self.timeout, env=os.environ.copy())
        except subprocess.TimeoutExpired:
            logger.log_operation_failure("pytest_run", time.time() - start,
                                         f"timed out after {self.timeout}s", error_code="TIMEOUT")
            return VerifySummary(
                status=VerifyStatus.ERROR,
                errors=[RunnerError(message=f"Test run timed out after {self.timeout}s")],
                duration=time.time() - start,
            )
        except OSError as e:
            raise TestRunnerError(f"Failed to launch pytest: {e}") from e

        if not report_path.exists():
            output = (completed.stderr or completed.stdout or "").strip()
            logger.log_operation_failure("pytest_run", time.time() - start,
                                         f"no report produced (exit code {completed.returncode})")
            return VerifySummary(
                status=VerifyStatus.ERROR,
                errors=[RunnerError(message=output.splitlines()[-1] if output else
                                    f"pytest exited with code {completed.returncode}",
                                    stack=output)],
                duration=time.time() - start,
            )

        summary = parse_junit_xml(str(report_path))
        if completed.returncode not in (0, 1) and summary.status is VerifyStatus.PASSED:
            summary.status = VerifyStatus.ERROR
            summary.errors.append(RunnerError(
                message=f"pytest exited with code {completed.returncode}",
                stack=(completed.stdout or "") + (completed.stderr or "")))

        logger.log_operation_success("pytest_run", time.time() - start,
                                     status=summary.status.value, passed=summary.passed,
                                     failed=summary.failed)
        return summary

    def verify_fn(self, test_file: str) -> Callable[[], VerifySummary]:
        """Zero-argument callable for ``HealingOrchestrator.heal``."""
        return lambda: self.run(test_file)
