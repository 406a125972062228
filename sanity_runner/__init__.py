"""
Sanity Runner - end-to-end test runner with retries, reports and alerts

Runs batches of end-to-end test files, retries failed batches, writes
NDJSON log records and JUnit reports, and alerts over Slack and PagerDuty.
"""

__version__ = "0.1.0"
__author__ = "Sanity Runner Team"

from .core.config import Config
from .core.exceptions import SanityRunnerError
from .core.logging_config import setup_logging
from .execution.models import RunConfiguration
from .runner import TestRunner

__all__ = [
    "Config",
    "SanityRunnerError",
    "setup_logging",
    "RunConfiguration",
    "TestRunner",
]
