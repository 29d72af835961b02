"""Webhook channel - posts JSON events to a configured URL."""
import logging
from datetime import datetime
from typing import Optional

import httpx

from ..models import MonitoredSite
from .checker import CheckResult
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)


class WebhookChannel(NotificationChannel):
    """Sends alerts, recoveries and reports as JSON POST requests."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def _site_payload(self, event: str, site: MonitoredSite, result: CheckResult) -> dict:
        return {
            "site": site.name,
            "url": site.url,
            "event": event,
            "status": site.current_status.value if site.current_status else None,
            "outcome": result.outcome.value,
            "severity": result.severity.value,
            "status_code": result.status_code,
            "response_time_ms": result.response_time_ms,
            "details": result.error_message,
            "timestamp": (result.timestamp or datetime.utcnow()).isoformat() + "Z",
        }

    async def send_alert(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self._post(self._site_payload("alert", site, result))

    async def send_recovery_notification(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self._post(self._site_payload("recovery", site, result))

    async def send_report(self, content: str, report_type: str) -> bool:
        return await self._post({
            "event": "report",
            "report_type": report_type,
            "content": content,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        })

    async def _post(self, payload: dict) -> bool:
        """Send a webhook POST request."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
            if response.status_code < 400:
                logger.info(f"Webhook sent: {payload['event']} for {payload.get('url', payload.get('report_type'))}")
                return True
            logger.warning(f"Webhook returned {response.status_code}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook: {e}")
            return False
