"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging
import uuid

import pytest

from journeyforge.core.models import RunnerError, VerifyStatus, VerifySummary
from journeyforge.services.learned_pattern_store import LearnedPatternStore


@pytest.fixture
def llkb_root(tmp_path):
    """Create a temporary LLKB directory for testing."""
    root = tmp_path / "llkb"
    root.mkdir()
    return root


@pytest.fixture
def store(llkb_root):
    """Learned pattern store with caching disabled."""
    return LearnedPatternStore(llkb_root=str(llkb_root), cache_ttl=0)


@pytest.fixture
def sample_journey_id():
    """Generate a unique journey ID."""
    return f"JRN-{uuid.uuid4().hex[:6]}"


@pytest.fixture
def make_summary():
    """Factory for failed VerifySummary objects."""
    def _make(*messages, location=None, stack=""):
        if not messages:
            return VerifySummary(status=VerifyStatus.PASSED, passed=1)
        return VerifySummary(
            status=VerifyStatus.FAILED,
            errors=[RunnerError(message=m, stack=stack, location=location) for m in messages],
            failed=len(messages),
        )
    return _make


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
