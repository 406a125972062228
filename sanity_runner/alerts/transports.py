"""
Chat and paging transports.

Slack messages go through the Web API ``chat.postMessage`` method and pages
through the PagerDuty Events API v2. Both deliver a rendered message and
report failures as AlertDeliveryError.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..core.exceptions import AlertDeliveryError


SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"


class ChatTransport(ABC):
    """Chat delivery boundary."""

    @abstractmethod
    async def send(self, message: str, channels: Sequence[str]) -> None:
        """Deliver message to every channel."""


class PagingTransport(ABC):
    """Paging delivery boundary."""

    @abstractmethod
    async def raise_incident(self, key: str, message: str) -> str:
        """Open (or update) the incident for key and return its id."""

    @abstractmethod
    async def resolve(self, key: str) -> None:
        """Resolve the incident for key. Unknown keys are not an error."""


class SlackTransport(ChatTransport):
    """Posts messages with a Slack bot token."""

    def __init__(
        self,
        token: str,
        api_url: str = SLACK_POST_MESSAGE_URL,
        timeout: int = 10,
        logger: Optional[logging.Logger] = None,
    ):
        self.token = token
        self.api_url = api_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    async def send(self, message: str, channels: Sequence[str]) -> None:
        """
        Post message to each channel in turn.

        A failing channel does not stop delivery to the rest; all failures
        are reported together once every channel has been tried.
        """
        failed: List[str] = []

        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as session:
            for channel in channels:
                try:
                    await self._post(session, channel, message)
                except (aiohttp.ClientError, AlertDeliveryError) as e:
                    self.logger.warning(f"Slack delivery to {channel} failed: {e}")
                    failed.append(channel)

        if failed:
            raise AlertDeliveryError(
                f"Slack delivery failed for {', '.join(failed)}",
                transport="slack",
                destination=", ".join(failed),
            )

    async def _post(
        self, session: aiohttp.ClientSession, channel: str, message: str
    ) -> None:
        async with session.post(
            self.api_url,
            json={"channel": channel, "text": message, "unfurl_links": False},
            headers={"Authorization": f"Bearer {self.token}"},
        ) as response:
            if response.status != 200:
                raise AlertDeliveryError(
                    f"Slack returned status {response.status}",
                    transport="slack",
                    destination=channel,
                )
            data = await response.json()
            if not data.get("ok"):
                raise AlertDeliveryError(
                    f"Slack rejected message: {data.get('error', 'unknown error')}",
                    transport="slack",
                    destination=channel,
                )


class PagerDutyTransport(PagingTransport):
    """Triggers and resolves PagerDuty incidents keyed by dedup key."""

    def __init__(
        self,
        routing_key: str,
        events_url: str = PAGERDUTY_EVENTS_URL,
        source: str = "sanity-runner",
        severity: str = "critical",
        timeout: int = 10,
    ):
        self.routing_key = routing_key
        self.events_url = events_url
        self.source = source
        self.severity = severity
        self.timeout = timeout

    def build_trigger_event(self, key: str, message: str) -> Dict[str, Any]:
        lines = message.strip().splitlines()
        summary = lines[0] if lines else key
        return {
            "routing_key": self.routing_key,
            "event_action": "trigger",
            "dedup_key": key,
            "payload": {
                "summary": summary[:1024],
                "source": self.source,
                "severity": self.severity,
                "custom_details": {"message": message},
            },
        }

    def build_resolve_event(self, key: str) -> Dict[str, Any]:
        return {
            "routing_key": self.routing_key,
            "event_action": "resolve",
            "dedup_key": key,
        }

    async def raise_incident(self, key: str, message: str) -> str:
        data = await self._enqueue(self.build_trigger_event(key, message), key)
        return data.get("dedup_key") or key

    async def resolve(self, key: str) -> None:
        await self._enqueue(self.build_resolve_event(key), key)

    async def _enqueue(self, event: Dict[str, Any], key: str) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.post(self.events_url, json=event) as response:
                    if response.status >= 300:
                        body = await response.text()
                        raise AlertDeliveryError(
                            f"PagerDuty returned status {response.status}: {body[:200]}",
                            transport="pagerduty",
                            destination=key,
                        )
                    return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise AlertDeliveryError(
                f"PagerDuty request failed: {e}",
                transport="pagerduty",
                destination=key,
            )
