"""
Pydantic models for run reporting.

Data models for per-test log records, JUnit case views and the run report
returned to callers.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TestCaseLogRecord(BaseModel):
    """One structured log line per executed test case."""

    __test__ = False

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    variables: Dict[str, str] = Field(default_factory=dict)
    retry_count: int = Field(..., ge=0, alias="retryCount")
    duration: Optional[float] = Field(None, description="Seconds, None when unknown")
    status: str = Field(..., description="passed, failed or skipped")
    end_time: Optional[int] = Field(None, alias="endTime")
    start_time: Optional[int] = Field(None, alias="startTime")
    test_name: str = Field(..., alias="testName")
    run_id: str = Field(..., alias="runId")
    execution_id: str = Field(..., alias="executionId")

    def to_log_dict(self) -> Dict[str, Any]:
        """Serialize with the wire field names."""
        return self.model_dump(by_alias=True)


class JUnitOutcome(Enum):
    """How a test file is rendered in the JUnit report."""

    PASSED = "passed"
    SKIPPED = "skipped"
    ERROR = "error"
    FAILURE = "failure"


class JUnitCase(BaseModel):
    """View of one test file as a JUnit test case."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    classname: str
    outcome: JUnitOutcome
    time: Optional[float] = None
    body: Optional[str] = None


class RunError(BaseModel):
    """Execution-level error recorded against a test file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file: str
    message: str


class RunReport(BaseModel):
    """Outcome of a run as returned to the caller."""

    model_config = ConfigDict(extra="forbid")

    run_id: str = Field(..., description="Run identifier")
    execution_id: str = Field(..., description="Execution identifier")
    passed: bool = Field(..., description="No unresolved failures after retries")
    retry_count: int = Field(..., ge=0)
    num_failed: int = Field(0, ge=0)
    num_skipped: int = Field(0, ge=0)
    screenshots: Dict[str, str] = Field(
        default_factory=dict, description="Case artifact path to signed URL"
    )
    errors: List[RunError] = Field(default_factory=list)
    junit_xml: str = Field(..., description="Rendered JUnit report")
    junit_path: Optional[str] = Field(None, description="Where the JUnit report was written")

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1
