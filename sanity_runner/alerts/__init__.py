"""
Alerting components for Sanity Runner.

Reads test metadata, decides what each run raises or resolves and delivers
it over Slack and PagerDuty.
"""

from .dispatcher import (
    AlertDispatcher,
    dedup_key,
    paging_enabled,
    parse_additional_channels,
    resolve_chat_alert,
)
from .metadata import extract_docblock, parse_pragmas, parse_test_metadata
from .models import (
    AlertAction,
    AlertDecision,
    ChatAlertSetting,
    DeliveryOutcome,
    TestMetadata,
)
from .transports import (
    ChatTransport,
    PagerDutyTransport,
    PagingTransport,
    SlackTransport,
)

__all__ = [
    "AlertDispatcher",
    "dedup_key",
    "paging_enabled",
    "parse_additional_channels",
    "resolve_chat_alert",
    "extract_docblock",
    "parse_pragmas",
    "parse_test_metadata",
    "AlertAction",
    "AlertDecision",
    "ChatAlertSetting",
    "DeliveryOutcome",
    "TestMetadata",
    "ChatTransport",
    "PagerDutyTransport",
    "PagingTransport",
    "SlackTransport",
]
