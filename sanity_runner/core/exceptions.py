"""
Base exception classes for Sanity Runner.

Provides a hierarchy of exceptions for the different failure modes of a run:
engine failures, artifact uploads, alert delivery and workspace handling.
"""

from typing import Optional, Dict, Any, List


class SanityRunnerError(Exception):
    """Base exception class for all Sanity Runner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ExecutionError(SanityRunnerError):
    """
    Raised when the execution engine could not run the tests at all.

    This is distinct from a failing test: the engine did not start, timed
    out, or produced output that could not be understood.
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: Optional[str] = None,
        retry_count: Optional[int] = None,
    ):
        super().__init__(message, "ENGINE_ERROR")
        self.exit_code = exit_code
        self.stderr = stderr
        self.retry_count = retry_count
        self.context.update(
            {
                "exit_code": exit_code,
                "stderr": stderr,
                "retry_count": retry_count,
            }
        )

    def with_retry_count(self, retry_count: int) -> "ExecutionError":
        """Record how many retries were consumed before the engine failed."""
        self.retry_count = retry_count
        self.context["retry_count"] = retry_count
        return self


class ArtifactUploadError(SanityRunnerError):
    """Raised when a failure artifact could not be stored or signed."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, "ARTIFACT_UPLOAD_FAILED")
        self.key = key
        self.status = status
        self.context.update(
            {
                "key": key,
                "status": status,
            }
        )


class AlertDeliveryError(SanityRunnerError):
    """Raised when a chat message or page could not be delivered."""

    def __init__(
        self,
        message: str,
        transport: Optional[str] = None,
        destination: Optional[str] = None,
        test_file: Optional[str] = None,
    ):
        super().__init__(message, "ALERT_DELIVERY_FAILED")
        self.transport = transport
        self.destination = destination
        self.test_file = test_file
        self.context.update(
            {
                "transport": transport,
                "destination": destination,
                "test_file": test_file,
            }
        )


class WorkspaceError(SanityRunnerError):
    """Raised when the run workspace cannot be created or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "WORKSPACE_ERROR")
        self.path = path
        self.operation = operation
        self.context.update(
            {
                "path": path,
                "operation": operation,
            }
        )


class ValidationError(SanityRunnerError):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[List[str]] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )


class ReportWriteError(SanityRunnerError):
    """Raised when a report file could not be written."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
    ):
        super().__init__(message, "REPORT_WRITE_FAILED")
        self.file_path = file_path
        self.context.update({"file_path": file_path})
