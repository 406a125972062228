"""
Alert decision and dispatch.

Decides, per declared test file, whether a run raises, suppresses or
resolves an alert, renders the message, and delivers it over chat and
paging transports. Delivery is best-effort and isolated per file.
"""

import asyncio
import re
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from jinja2 import Environment

from ..core.exceptions import AlertDeliveryError
from ..core.logging_config import get_logger
from ..execution.models import AggregateRunResult, TestFileResult, derive_test_name
from .metadata import parse_test_metadata
from .models import (
    AlertAction,
    AlertDecision,
    ChatAlertSetting,
    DeliveryOutcome,
    TestMetadata,
)
from .transports import ChatTransport, PagingTransport


CHAT_ALERT_VARIABLE = "SLACK_ALERT"
DEPRECATED_CHAT_ALERT_VARIABLE = "ALERT"
CHAT_CHANNELS_VARIABLE = "SLACK_CHANNELS"
PAGING_ALERT_VARIABLE = "PAGERDUTY_ALERT"

MAX_FAILURE_MESSAGES = 5
MAX_FAILURE_MESSAGE_LENGTH = 1000

MESSAGE_TEMPLATE = """\
Sanity test *{{ test_name }}* {{ status }}.
{% if description %}
Description: {{ description }}
{% endif %}
{% if runbook %}
Runbook: {{ runbook }}
{% endif %}
{% if error %}
Error: {{ error }}
{% endif %}
{% if failures %}
Failures:
{% for failure in failures %}
```{{ failure }}```
{% endfor %}
{% if omitted %}
... and {{ omitted }} more
{% endif %}
{% endif %}
{% if screenshots %}
Screenshots:
{% for path, url in screenshots %}
- <{{ url }}|{{ path }}>
{% endfor %}
{% endif %}
{% if variables %}
Variables: {% for name, value in variables %}{{ name }}={{ value }}{% if not loop.last %}, {% endif %}{% endfor %}

{% endif %}
Run: {{ run_id }} | Execution: {{ execution_id }}
"""

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def resolve_chat_alert(variables: Dict[str, str]) -> ChatAlertSetting:
    """Effective chat toggle. The deprecated variable still enables chat, with a warning."""
    enabled = bool(variables.get(CHAT_ALERT_VARIABLE))
    warning = None
    if variables.get(DEPRECATED_CHAT_ALERT_VARIABLE):
        enabled = True
        warning = (
            f"The test variable '{DEPRECATED_CHAT_ALERT_VARIABLE}' is deprecated. "
            f"Please use '{CHAT_ALERT_VARIABLE}' instead."
        )
    return ChatAlertSetting(enabled=enabled, deprecation_warning=warning)


def parse_additional_channels(value: Optional[str]) -> List[str]:
    """Split a comma or whitespace separated channel list."""
    channels: List[str] = []
    for channel in re.split(r"[\s,]+", value or ""):
        if channel and channel not in channels:
            channels.append(channel)
    return channels


def paging_enabled(variables: Dict[str, str]) -> bool:
    return bool(variables.get(PAGING_ALERT_VARIABLE))


def dedup_key(test_file: str) -> str:
    """Paging key for a declared test file. Files sharing a base name stay distinct."""
    return f"sanity-runner/{test_file}"


class AlertDispatcher:
    """
    Routes run outcomes to chat and paging.

    A failing run alerts every declared test file, including files whose own
    tests passed. A passing run resolves any page open for each file.
    """

    def __init__(
        self,
        chat_transport: Optional[ChatTransport] = None,
        paging_transport: Optional[PagingTransport] = None,
        default_channel: str = "#sanity-runner",
        run_id: str = "-",
        execution_id: str = "-",
    ):
        self.chat_transport = chat_transport
        self.paging_transport = paging_transport
        self.default_channel = default_channel
        self.run_id = run_id
        self.execution_id = execution_id
        self.logger = get_logger(__name__, run_id=run_id)
        self.jinja_env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self.message_template = self.jinja_env.from_string(MESSAGE_TEMPLATE)

    def decide(
        self,
        test_files: Dict[str, str],
        aggregate: AggregateRunResult,
        variables: Dict[str, str],
    ) -> List[AlertDecision]:
        """One decision per declared test file, in declaration order."""
        chat_setting = resolve_chat_alert(variables)
        if chat_setting.deprecation_warning:
            self.logger.warning(chat_setting.deprecation_warning)

        page = paging_enabled(variables)
        run_failed = aggregate.num_failed > 0

        channels = ()
        if chat_setting.enabled:
            channels = tuple(
                [self.default_channel]
                + [
                    c
                    for c in parse_additional_channels(variables.get(CHAT_CHANNELS_VARIABLE))
                    if c != self.default_channel
                ]
            )

        decisions = []
        for test_file, source in test_files.items():
            metadata = parse_test_metadata(source)
            test_name = derive_test_name(test_file)

            if run_failed:
                action = AlertAction.RAISE if (channels or page) else AlertAction.SUPPRESS
                message = ""
                if action == AlertAction.RAISE:
                    message = self.render_message(test_file, aggregate, metadata, variables)
                decision = AlertDecision(
                    test_file=test_file,
                    test_name=test_name,
                    action=action,
                    message=message,
                    channels=channels,
                    page=page,
                    dedup_key=dedup_key(test_file),
                )
            else:
                decision = AlertDecision(
                    test_file=test_file,
                    test_name=test_name,
                    action=AlertAction.RESOLVE if page else AlertAction.NONE,
                    resolve_page=page,
                    dedup_key=dedup_key(test_file),
                )

            decisions.append(decision)

        return decisions

    def render_message(
        self,
        test_file: str,
        aggregate: AggregateRunResult,
        metadata: TestMetadata,
        variables: Dict[str, str],
    ) -> str:
        """Render the alert text. Identical inputs give identical text."""
        file_result = aggregate.files.get(test_file)
        error = aggregate.file_error(test_file)

        failures: List[str] = []
        screenshots = []
        if file_result is not None:
            failures = [
                _clean(message)[:MAX_FAILURE_MESSAGE_LENGTH]
                for message in file_result.failure_messages()
            ]
            screenshots = _screenshots_for(file_result, aggregate.artifacts)

        if error is not None:
            status = "could not be run"
        elif file_result is not None and file_result.num_failed:
            status = "failed"
        else:
            status = "passed, but the run failed"

        return self.message_template.render(
            test_name=derive_test_name(test_file),
            status=status,
            description=metadata.description,
            runbook=metadata.runbook,
            error=_clean(error) if error else None,
            failures=failures[:MAX_FAILURE_MESSAGES],
            omitted=max(0, len(failures) - MAX_FAILURE_MESSAGES),
            screenshots=screenshots,
            variables=sorted(variables.items()),
            run_id=self.run_id,
            execution_id=self.execution_id,
        ).strip()

    async def dispatch(self, decisions: List[AlertDecision]) -> List[DeliveryOutcome]:
        """Deliver decisions, one task per test file. Never raises on delivery failure."""
        return list(await asyncio.gather(*(self._deliver(d) for d in decisions)))

    async def alert_on_result(
        self,
        test_files: Dict[str, str],
        aggregate: AggregateRunResult,
        variables: Dict[str, str],
    ) -> List[DeliveryOutcome]:
        return await self.dispatch(self.decide(test_files, aggregate, variables))

    async def _deliver(self, decision: AlertDecision) -> DeliveryOutcome:
        outcome = DeliveryOutcome(test_file=decision.test_file, action=decision.action)

        if decision.action == AlertAction.RAISE and decision.chat:
            try:
                if self.chat_transport is None:
                    raise AlertDeliveryError(
                        "No chat transport configured", transport="slack"
                    )
                await self.chat_transport.send(decision.message, decision.channels)
                outcome.chat_sent = True
            except Exception as e:
                self._record_failure(outcome, decision, "chat", e)

        if decision.action == AlertAction.RAISE and decision.page:
            try:
                if self.paging_transport is None:
                    raise AlertDeliveryError(
                        "No paging transport configured", transport="pagerduty"
                    )
                outcome.incident_id = await self.paging_transport.raise_incident(
                    decision.dedup_key, decision.message
                )
            except Exception as e:
                self._record_failure(outcome, decision, "page", e)

        if decision.action == AlertAction.RESOLVE and decision.resolve_page:
            try:
                if self.paging_transport is None:
                    raise AlertDeliveryError(
                        "No paging transport configured", transport="pagerduty"
                    )
                await self.paging_transport.resolve(decision.dedup_key)
                outcome.page_resolved = True
            except Exception as e:
                self._record_failure(outcome, decision, "resolve", e)

        if outcome.delivered and decision.action in (AlertAction.RAISE, AlertAction.RESOLVE):
            self.logger.info(
                f"Alert {decision.action.value} delivered for {decision.test_file}",
                extra={"metadata": {"test_file": decision.test_file, "channels": list(decision.channels)}},
            )

        return outcome

    def _record_failure(
        self,
        outcome: DeliveryOutcome,
        decision: AlertDecision,
        kind: str,
        error: Exception,
    ) -> None:
        if not isinstance(error, AlertDeliveryError):
            error = AlertDeliveryError(str(error))
        error.test_file = decision.test_file
        error.context["test_file"] = decision.test_file

        outcome.errors.append(f"{kind}: {error}")
        self.logger.error(
            f"Alert {kind} delivery failed for {decision.test_file}: {error}",
            extra={"metadata": error.to_dict()},
        )


def _clean(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text).strip()


def _screenshots_for(file_result: TestFileResult, artifacts: Dict[str, str]):
    names = {case.full_name for case in file_result.cases}
    return sorted(
        (path, url)
        for path, url in artifacts.items()
        if str(PurePosixPath(path).parent) in names
    )
