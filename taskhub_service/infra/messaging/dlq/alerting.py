"""Dead-letter alerting with configurable channels and rate limiting.

Every dead-lettered event or message raises an alert. Channels:

- ``log``: a structured log record (warning or critical)
- ``webhook``: a JSON POST (Slack-compatible body plus the structured alert)

Alerts for the same source and reason are throttled so a poisoned handler
does not flood the channels; throttled alerts are still counted.

Example:
    alerter = DeadLetterAlerter(AlertSettings(channels=("log", "webhook"), webhook_url=url))
    await alerter.alert(entry)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

from taskhub_service.infra.metrics.prometheus import alerts_sent_total

if TYPE_CHECKING:
    from taskhub_service.core.settings.alerts import AlertSettings

    from .store import DeadLetterEntry

logger = logging.getLogger(__name__)


class AlertSeverity(StrEnum):
    WARNING = "warning"
    CRITICAL = "critical"


class AlertChannel(StrEnum):
    LOG = "log"
    WEBHOOK = "webhook"


@dataclass
class DeadLetterAlert:
    """Alert raised for one dead-letter entry."""

    timestamp: datetime
    severity: AlertSeverity
    entry_id: str
    kind: str
    tenant_id: str
    source: str
    reason: str
    attempts: int
    last_error: str | None = None
    body_preview: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "entry_id": self.entry_id,
            "kind": self.kind,
            "tenant_id": self.tenant_id,
            "source": self.source,
            "reason": self.reason,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "body_preview": self.body_preview,
            "metadata": self.metadata,
        }

    def format_subject(self) -> str:
        return (
            f"Dead letter [{self.severity.value.upper()}]: "
            f"{self.kind} from {self.source} ({self.reason})"
        )


class RateLimiter:
    """Minimum interval between alerts per key."""

    def __init__(self, min_interval_seconds: float = 60) -> None:
        self._last_alert: dict[str, datetime] = {}
        self._min_interval = min_interval_seconds

    def should_alert(self, key: str) -> bool:
        if self._min_interval <= 0:
            return True

        now = datetime.now(UTC)
        last = self._last_alert.get(key)
        if last is None or (now - last).total_seconds() >= self._min_interval:
            self._last_alert[key] = now
            return True
        return False

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._last_alert.clear()
        else:
            self._last_alert.pop(key, None)


class DeadLetterAlerter:
    """Sends dead-letter alerts to the configured channels.

    The last alerts are kept in ``history`` for inspection.
    """

    def __init__(
        self,
        settings: AlertSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        history_size: int = 100,
    ) -> None:
        self.settings = settings
        self._rate_limiter = RateLimiter(settings.rate_limit_seconds)
        self._http_client = http_client
        self._owns_client = http_client is None
        self.history: deque[DeadLetterAlert] = deque(maxlen=history_size)

    @property
    def channels(self) -> list[AlertChannel]:
        return [AlertChannel(c) for c in self.settings.channels]

    async def alert(self, entry: DeadLetterEntry) -> bool:
        """Alert on a dead-letter entry.

        Returns:
            True if the alert was sent, False if disabled or rate limited.
        """
        if not self.settings.enabled:
            return False

        rate_key = f"{entry.kind}:{entry.source}:{entry.reason}"
        if not self._rate_limiter.should_alert(rate_key):
            alerts_sent_total.labels(channel="all", status="rate_limited").inc()
            logger.debug("Dead-letter alert rate limited", extra={"rate_key": rate_key})
            return False

        alert = self._build_alert(entry)
        self.history.append(alert)

        sends = []
        for channel in self.channels:
            if channel is AlertChannel.LOG:
                sends.append(self._send_log_alert(alert))
            elif channel is AlertChannel.WEBHOOK:
                sends.append(self._send_webhook_alert(alert))

        if sends:
            await asyncio.gather(*sends)
        return True

    def _build_alert(self, entry: DeadLetterEntry) -> DeadLetterAlert:
        severity = AlertSeverity.CRITICAL if entry.reason == "fatal" else AlertSeverity.WARNING
        preview = None
        if self.settings.include_body_preview:
            preview = self._truncate(json.dumps(entry.body, default=str))
        return DeadLetterAlert(
            timestamp=datetime.now(UTC),
            severity=severity,
            entry_id=entry.entry_id,
            kind=entry.kind.value,
            tenant_id=entry.tenant_id,
            source=entry.source,
            reason=entry.reason.value,
            attempts=entry.attempts,
            last_error=self._truncate(entry.last_error) if entry.last_error else None,
            body_preview=preview,
        )

    def _truncate(self, text: str) -> str:
        limit = self.settings.max_preview_length
        if len(text) <= limit:
            return text
        return text[: limit - 3] + "..."

    async def _send_log_alert(self, alert: DeadLetterAlert) -> None:
        log_method = logger.critical if alert.severity is AlertSeverity.CRITICAL else logger.warning
        log_method(
            alert.format_subject(),
            extra={
                "dead_letter_alert": alert.to_dict(),
                "alert_severity": alert.severity.value,
                "tenant_id": alert.tenant_id,
            },
        )
        alerts_sent_total.labels(channel=AlertChannel.LOG.value, status="sent").inc()

    async def _send_webhook_alert(self, alert: DeadLetterAlert) -> None:
        if not self.settings.webhook_url:
            logger.debug("No webhook URL configured for dead-letter alerts")
            return

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.webhook_timeout_seconds)

        payload = {
            "text": alert.format_subject(),
            "attachments": [
                {
                    "color": "#ff0000" if alert.severity is AlertSeverity.CRITICAL else "#ffcc00",
                    "fields": [
                        {"title": "Tenant", "value": alert.tenant_id, "short": True},
                        {"title": "Source", "value": alert.source, "short": True},
                        {"title": "Attempts", "value": str(alert.attempts), "short": True},
                        {"title": "Last error", "value": alert.last_error or "", "short": False},
                    ],
                }
            ],
            "alert": alert.to_dict(),
        }

        try:
            response = await self._http_client.post(self.settings.webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError:
            alerts_sent_total.labels(channel=AlertChannel.WEBHOOK.value, status="failed").inc()
            logger.exception(
                "Failed to send dead-letter webhook alert",
                extra={"entry_id": alert.entry_id},
            )
            return

        alerts_sent_total.labels(channel=AlertChannel.WEBHOOK.value, status="sent").inc()

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


__all__ = [
    "AlertChannel",
    "AlertSeverity",
    "DeadLetterAlert",
    "DeadLetterAlerter",
    "RateLimiter",
]
