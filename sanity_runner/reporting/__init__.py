"""
Reporting components for Sanity Runner.

Provides per-test log records, JUnit XML rendering and the run report.
"""

from .generator import ResultFormatter
from .models import JUnitCase, JUnitOutcome, RunError, RunReport, TestCaseLogRecord

__all__ = [
    "ResultFormatter",
    "JUnitCase",
    "JUnitOutcome",
    "RunError",
    "RunReport",
    "TestCaseLogRecord",
]
