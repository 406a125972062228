"""
Test execution components for Sanity Runner.

This module provides the engine adapter, the bounded retry loop and failure
artifact publishing.
"""

from .artifacts import ArtifactReporter, BlobStore, HttpBlobStore
from .executor import EngineAdapter, EngineRunConfig, ExecutionEngine, SubprocessEngine
from .models import (
    AggregateRunResult,
    CaseStatus,
    ExecutionResult,
    RunConfiguration,
    TestCaseResult,
    TestFileResult,
    derive_test_name,
)
from .retry import run_with_retry

__all__ = [
    "ArtifactReporter",
    "BlobStore",
    "HttpBlobStore",
    "EngineAdapter",
    "EngineRunConfig",
    "ExecutionEngine",
    "SubprocessEngine",
    "AggregateRunResult",
    "CaseStatus",
    "ExecutionResult",
    "RunConfiguration",
    "TestCaseResult",
    "TestFileResult",
    "derive_test_name",
    "run_with_retry",
]
