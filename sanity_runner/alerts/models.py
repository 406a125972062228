"""
Data models for alerting.

Per-file metadata read from test sources, the alert decision taken for each
test file and the outcome of delivering it.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TestMetadata(BaseModel):
    """Metadata declared in a test file's leading docblock."""

    __test__ = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    description: Optional[str] = Field(None, description="@Description pragma")
    runbook: Optional[str] = Field(None, description="@Runbook pragma")
    pragmas: Dict[str, str] = Field(default_factory=dict, description="All pragmas")


class AlertAction(Enum):
    """What happens to a test file's alert after a run."""

    RAISE = "raise"
    SUPPRESS = "suppress"
    RESOLVE = "resolve"
    NONE = "none"


class ChatAlertSetting(BaseModel):
    """Effective chat alert toggle, with a warning when a deprecated variable enabled it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool
    deprecation_warning: Optional[str] = None


class AlertDecision(BaseModel):
    """The alerting decision for one test file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_file: str = Field(..., description="Declared test file name")
    test_name: str = Field(..., description="File basename minus extension")
    action: AlertAction
    message: str = Field("", description="Rendered message body")
    channels: Tuple[str, ...] = Field(
        default_factory=tuple, description="Chat destinations, empty when chat is off"
    )
    page: bool = Field(False, description="Raise a page")
    resolve_page: bool = Field(False, description="Resolve any open page")
    dedup_key: str = Field(..., description="Paging key tying raises to resolves")

    @property
    def chat(self) -> bool:
        return bool(self.channels)


class DeliveryOutcome(BaseModel):
    """What was actually delivered for one test file."""

    model_config = ConfigDict(extra="forbid")

    test_file: str
    action: AlertAction
    chat_sent: bool = False
    incident_id: Optional[str] = None
    page_resolved: bool = False
    errors: List[str] = Field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return not self.errors
