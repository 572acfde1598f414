"""journeyforge: resolve journey steps into Playwright actions and keep the generated tests passing."""

__version__ = "0.1.0"
