"""
Data models for test execution.

Defines the run configuration and the canonical, engine-independent result
structures produced by the engine adapter and resolved by the retry loop.
"""

import uuid
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def derive_test_name(file_name: str) -> str:
    """File basename minus its last extension."""
    name = PurePosixPath(file_name).name
    if "." in name:
        return name[: name.rindex(".")]
    return name


class CaseStatus(Enum):
    """Status of a single test case."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def from_engine(cls, status: Optional[str]) -> "CaseStatus":
        """Map an engine status onto the canonical set. Unknown means failed."""
        if status == "passed":
            return cls.PASSED
        if status in ("skipped", "pending", "todo", "disabled"):
            return cls.SKIPPED
        return cls.FAILED


class RunConfiguration(BaseModel):
    """Everything that identifies one logical run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    run_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, description="Logical run identifier"
    )
    execution_id: str = Field(..., description="Distinguishes this run from sibling runs")
    test_files: Dict[str, str] = Field(..., description="Test file name to source text")
    variables: Dict[str, str] = Field(
        default_factory=dict, description="Run-level variable overrides"
    )
    max_retries: int = Field(0, ge=0, description="Retries allowed after the first attempt")

    @field_validator("test_files")
    @classmethod
    def validate_test_files(cls, v):
        """At least one test file is required."""
        if not v:
            raise ValueError("At least one test file is required")
        return v

    @field_validator("execution_id")
    @classmethod
    def validate_execution_id(cls, v):
        if not v or not v.strip():
            raise ValueError("Execution id cannot be empty")
        return v


class TestCaseResult(BaseModel):
    """Outcome of a single test case."""

    __test__ = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str = Field(..., description="Test case title")
    full_name: str = Field(..., description="Title including enclosing describe blocks")
    status: CaseStatus = Field(..., description="Normalized status")
    duration: Optional[float] = Field(
        None, ge=0, description="Duration in seconds, None when the engine did not report it"
    )
    failure_messages: Tuple[str, ...] = Field(
        default_factory=tuple, description="Failure messages in reported order"
    )


class TestFileResult(BaseModel):
    """Outcome of one test file."""

    __test__ = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    file_name: str = Field(..., description="Declared test file name")
    cases: Tuple[TestCaseResult, ...] = Field(default_factory=tuple)
    num_pending: int = Field(0, ge=0, description="Pending tests reported for the file")
    start_time: Optional[int] = Field(None, description="Start time, epoch milliseconds")
    end_time: Optional[int] = Field(None, description="End time, epoch milliseconds")
    time: Optional[float] = Field(None, ge=0, description="File duration in seconds")
    error: Optional[str] = Field(None, description="Execution-level error for the file")

    @property
    def test_name(self) -> str:
        return derive_test_name(self.file_name)

    @property
    def skipped(self) -> bool:
        """The file reported pending tests."""
        return self.num_pending > 0

    @property
    def num_failed(self) -> int:
        return sum(1 for case in self.cases if case.status == CaseStatus.FAILED)

    @property
    def num_skipped(self) -> int:
        if self.skipped:
            return len(self.cases)
        return sum(1 for case in self.cases if case.status == CaseStatus.SKIPPED)

    @property
    def passed(self) -> bool:
        return self.error is None and self.num_failed == 0

    def failure_messages(self) -> List[str]:
        """All failure messages of the file's failed cases, in case order."""
        messages: List[str] = []
        for case in self.cases:
            if case.status == CaseStatus.FAILED:
                messages.extend(case.failure_messages)
        return messages


class ExecutionResult(BaseModel):
    """Canonical result of one engine invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    success: bool = Field(..., description="Engine reported overall success")
    files: Dict[str, TestFileResult] = Field(
        default_factory=dict, description="Per-file results in engine order"
    )
    artifacts: Dict[str, str] = Field(
        default_factory=dict, description="Case artifact path to signed URL"
    )

    @property
    def num_failed_tests(self) -> int:
        return sum(f.num_failed for f in self.files.values())


class AggregateRunResult(BaseModel):
    """The retry-resolved result of a run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    result: ExecutionResult = Field(..., description="Authoritative attempt result")
    retry_count: int = Field(..., ge=0, description="Retries consumed")
    errors: Dict[str, str] = Field(
        default_factory=dict, description="Run-level engine errors keyed by test file"
    )

    @classmethod
    def from_execution_error(
        cls,
        config: RunConfiguration,
        error: Exception,
        retry_count: int = 0,
    ) -> "AggregateRunResult":
        """Record an engine error against every declared test file."""
        return cls(
            result=ExecutionResult(success=False),
            retry_count=retry_count,
            errors={name: str(error) for name in config.test_files},
        )

    @property
    def files(self) -> Dict[str, TestFileResult]:
        return self.result.files

    @property
    def artifacts(self) -> Dict[str, str]:
        return self.result.artifacts

    def file_names(self) -> List[str]:
        """Files with results, followed by files known only through errors."""
        names = list(self.result.files)
        names.extend(name for name in self.errors if name not in self.result.files)
        return names

    def file_error(self, file_name: str) -> Optional[str]:
        if file_name in self.errors:
            return self.errors[file_name]
        file_result = self.result.files.get(file_name)
        return file_result.error if file_result else None

    @property
    def num_failed(self) -> int:
        """Failed cases, plus one for every file that errored without failed cases."""
        failed = 0
        for name in self.file_names():
            file_result = self.result.files.get(name)
            cases_failed = file_result.num_failed if file_result else 0
            if cases_failed == 0 and self.file_error(name) is not None:
                failed += 1
            failed += cases_failed
        return failed

    @property
    def num_skipped(self) -> int:
        return sum(f.num_skipped for f in self.result.files.values())

    @property
    def success(self) -> bool:
        return self.result.success and self.num_failed == 0
