"""Alert dispatch for budget, breaker and anomaly events.

Delivery is best-effort: a failing destination is logged and the next one
is still tried. Nothing here raises into the caller's invocation, and
webhook posts made from inside an event loop run as background tasks.

Usage:
    alerts = AlertManager(config.alerts, sinks=[CallbackSink(my_handler)])
    alerts.notify("budget_soft_cap", {"scope": "global_daily", "limit": 25.0, "total": 27.5})
"""

import asyncio
import time
from typing import Any, Callable, Iterable, Optional, Protocol

import httpx

from agentgate.config import AlertSettings
from agentgate.logging import get_logger

logger = get_logger(__name__)

BUDGET_SOFT_CAP = "budget_soft_cap"
BUDGET_HARD_CAP = "budget_hard_cap"
TOKEN_SOFT_CAP = "token_soft_cap"
TOKEN_HARD_CAP = "token_hard_cap"
EXECUTION_SOFT_CAP = "execution_soft_cap"
EXECUTION_HARD_CAP = "execution_hard_cap"
BREAKER_OPEN = "breaker_open"
AGENT_ANOMALY = "agent_anomaly"

EVENT_TITLES = {
    BUDGET_SOFT_CAP: "Budget Soft Cap Reached",
    BUDGET_HARD_CAP: "Budget Hard Cap Exceeded",
    TOKEN_SOFT_CAP: "Token Soft Cap Reached",
    TOKEN_HARD_CAP: "Token Hard Cap Exceeded",
    EXECUTION_SOFT_CAP: "Execution Soft Cap Reached",
    EXECUTION_HARD_CAP: "Execution Hard Cap Exceeded",
    BREAKER_OPEN: "Circuit Breaker Opened",
    AGENT_ANOMALY: "Agent Anomaly Detected",
}

EVENT_COLORS = {
    BUDGET_SOFT_CAP: "#FFA500",
    TOKEN_SOFT_CAP: "#FFA500",
    EXECUTION_SOFT_CAP: "#FFA500",
    AGENT_ANOMALY: "#FFA500",
    BUDGET_HARD_CAP: "#FF0000",
    TOKEN_HARD_CAP: "#FF0000",
    EXECUTION_HARD_CAP: "#FF0000",
    BREAKER_OPEN: "#FF0000",
}


class AlertSink(Protocol):
    def notify(self, event: str, payload: dict[str, Any]) -> None: ...


class CallbackSink:
    """Adapt a plain ``fn(event, payload)`` callable to an AlertSink."""

    def __init__(self, callback: Callable[[str, dict[str, Any]], None]):
        self.callback = callback

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.callback(event, payload)


def format_slack_message(event: str, payload: dict[str, Any]) -> dict[str, Any]:
    title = EVENT_TITLES.get(event, event.replace("_", " ").title())
    fields = [
        {"title": key.replace("_", " ").title(), "value": str(value), "short": True}
        for key, value in payload.items()
        if key != "event"
    ]
    return {
        "attachments": [
            {
                "fallback": f"{title}: {payload}",
                "color": EVENT_COLORS.get(event, "#0000FF"),
                "pretext": "*agentgate alert*",
                "title": title,
                "fields": fields,
                "footer": "agentgate",
                "ts": int(time.time()),
            }
        ]
    }


class AlertManager:
    """Sends events to in-process sinks and configured webhooks.

    Inside a running event loop webhook posts are scheduled as background
    tasks on an ``httpx.AsyncClient``, so a slow destination never holds up
    the invocation that raised the alert. ``drain()`` waits for them. With
    no running loop the posts go out synchronously.
    """

    def __init__(
        self,
        settings: Optional[AlertSettings] = None,
        sinks: Optional[Iterable[AlertSink]] = None,
        http_client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or AlertSettings()
        self.sinks = list(sinks or [])
        self._http_client = http_client
        self._async_client = async_client
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(
            self.sinks or self.settings.webhook_url or self.settings.slack_webhook_url
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    def wants(self, event: str) -> bool:
        """An empty event list subscribes to everything."""
        return not self.settings.on_events or event in self.settings.on_events

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        if not self.enabled or not self.wants(event):
            return

        full_payload = {**payload, "event": event}

        for sink in self.sinks:
            try:
                sink.notify(event, full_payload)
            except Exception as e:
                logger.warning("alert_sink_failed", alert_event=event, error=str(e))

        posts = []
        if self.settings.slack_webhook_url:
            posts.append((self.settings.slack_webhook_url, format_slack_message(event, full_payload)))
        if self.settings.webhook_url:
            posts.append((self.settings.webhook_url, full_payload))
        if not posts:
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            for url, body in posts:
                self._post(url, body, event)
            return

        task = asyncio.create_task(self._deliver(posts, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for webhook posts still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, posts: list[tuple[str, dict[str, Any]]], event: str) -> None:
        if self._async_client is not None:
            for url, body in posts:
                await self._apost(self._async_client, url, body, event)
            return
        async with httpx.AsyncClient() as client:
            for url, body in posts:
                await self._apost(client, url, body, event)

    async def _apost(self, client: httpx.AsyncClient, url: str, body: dict[str, Any], event: str) -> None:
        try:
            response = await client.post(url, json=body, timeout=self.settings.timeout_seconds)
        except httpx.TimeoutException:
            logger.warning("alert_webhook_failed", alert_event=event, error="Request timed out")
            return
        except httpx.RequestError as e:
            logger.warning("alert_webhook_failed", alert_event=event, error=str(e))
            return
        self._check_response(response, event)

    def _post(self, url: str, body: dict[str, Any], event: str) -> None:
        try:
            if self._http_client is not None:
                response = self._http_client.post(url, json=body, timeout=self.settings.timeout_seconds)
            else:
                with httpx.Client() as client:
                    response = client.post(url, json=body, timeout=self.settings.timeout_seconds)
        except httpx.TimeoutException:
            logger.warning("alert_webhook_failed", alert_event=event, error="Request timed out")
            return
        except httpx.RequestError as e:
            logger.warning("alert_webhook_failed", alert_event=event, error=str(e))
            return
        self._check_response(response, event)

    def _check_response(self, response: httpx.Response, event: str) -> None:
        if not 200 <= response.status_code < 300:
            logger.warning(
                "alert_webhook_failed",
                alert_event=event,
                status_code=response.status_code,
                body=response.text[:500],
            )
