"""Exception hierarchy.

Policy outcomes (blocked steps, refused healing, open circuits) are returned
as structured results; these exceptions are for configuration and I/O faults.
"""


class JourneyForgeError(Exception):
    """Base class for all journeyforge errors."""
    pass


class ConfigurationError(JourneyForgeError):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


class PatternStoreError(JourneyForgeError):
    """Raised when the learned pattern store cannot be written."""
    pass


class FixApplicationError(JourneyForgeError):
    """Raised when an edited test file cannot be backed up or written."""
    pass


class TestRunnerError(JourneyForgeError):
    """Raised when the external test runner cannot be invoked."""
    __test__ = False
