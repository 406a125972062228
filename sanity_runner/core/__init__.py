"""Core components for Sanity Runner."""

from .config import Config
from .exceptions import (
    SanityRunnerError,
    ExecutionError,
    ArtifactUploadError,
    AlertDeliveryError,
    WorkspaceError,
    ValidationError,
    ReportWriteError,
)
from .logging_config import setup_logging, get_logger
from .workspace import RunWorkspace

__all__ = [
    "Config",
    "SanityRunnerError",
    "ExecutionError",
    "ArtifactUploadError",
    "AlertDeliveryError",
    "WorkspaceError",
    "ValidationError",
    "ReportWriteError",
    "setup_logging",
    "get_logger",
    "RunWorkspace",
]
