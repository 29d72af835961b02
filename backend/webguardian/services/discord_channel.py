"""Discord channel - posts embeds through a Discord incoming webhook."""
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..models import MonitoredSite, AlertSeverity
from .checker import CheckResult
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)

# Embed colors (decimal RGB)
COLOR_RED = 0xFF0000
COLOR_ORANGE_RED = 0xFF4500
COLOR_ORANGE = 0xFFA500
COLOR_YELLOW = 0xFFFF00
COLOR_GREEN = 0x00FF00
COLOR_BLUE = 0x0000FF

SEVERITY_STYLE = {
    AlertSeverity.CRITICAL: (COLOR_RED, "⚠️ CRITICAL ALERT"),
    AlertSeverity.HIGH: (COLOR_ORANGE_RED, "⚠️ HIGH ALERT"),
    AlertSeverity.MEDIUM: (COLOR_ORANGE, "⚠️ MEDIUM ALERT"),
}

# Discord rejects embed descriptions longer than this
MAX_DESCRIPTION = 4096

FOOTER = {"text": "WebGuardian Monitoring"}


def format_duration_ms(ms: Optional[int]) -> str:
    if ms is None:
        return "N/A"
    if ms < 1000:
        return f"{ms} ms"
    return f"{ms / 1000:.2f} s"


class DiscordChannel(NotificationChannel):
    """Sends notifications as Discord embeds.

    Alerts and recoveries go to ``webhook_url``; reports go to
    ``report_webhook_url`` when set, otherwise to the same webhook.
    """

    name = "discord"

    def __init__(
        self,
        webhook_url: str,
        report_webhook_url: Optional[str] = None,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.report_webhook_url = report_webhook_url or webhook_url
        self.timeout = timeout
        self._transport = transport

    def build_alert_embed(self, site: MonitoredSite, result: CheckResult) -> dict:
        color, title = SEVERITY_STYLE.get(result.severity, (COLOR_YELLOW, "⚠️ LOW ALERT"))
        fields = [{"name": "URL", "value": site.url, "inline": False}]
        if result.status_code is not None:
            fields.append({"name": "Status code", "value": str(result.status_code), "inline": True})
        if result.response_time_ms is not None:
            fields.append({"name": "Response time", "value": format_duration_ms(result.response_time_ms), "inline": True})
        if not result.content_check_passed:
            fields.append({"name": "Content check", "value": "❌ Failed", "inline": True})
        if not result.ssl_check_passed and site.ssl_check:
            fields.append({"name": "SSL certificate", "value": "❌ Problem detected", "inline": True})
        if result.error_message:
            fields.append({"name": "Error", "value": result.error_message[:1024], "inline": False})
        return {
            "title": title,
            "description": f"Problem detected on {site.name}",
            "color": color,
            "fields": fields,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "footer": FOOTER,
        }

    def build_recovery_embed(self, site: MonitoredSite, result: CheckResult) -> dict:
        return {
            "title": "✅ SITE RECOVERED",
            "description": f"{site.name} is operational again",
            "color": COLOR_GREEN,
            "fields": [
                {"name": "URL", "value": site.url, "inline": False},
                {
                    "name": "Status code",
                    "value": str(result.status_code) if result.status_code is not None else "N/A",
                    "inline": True,
                },
                {"name": "Response time", "value": format_duration_ms(result.response_time_ms), "inline": True},
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "footer": FOOTER,
        }

    async def send_alert(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self._post(self.webhook_url, self.build_alert_embed(site, result))

    async def send_recovery_notification(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self._post(self.webhook_url, self.build_recovery_embed(site, result))

    async def send_report(self, content: str, report_type: str) -> bool:
        if len(content) > MAX_DESCRIPTION:
            content = content[:MAX_DESCRIPTION - 3] + "..."
        embed = {
            "title": f"{report_type} report",
            "description": f"```\n{content}\n```" if len(content) <= MAX_DESCRIPTION - 8 else content,
            "color": COLOR_BLUE,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "footer": {"text": "WebGuardian"},
        }
        return await self._post(self.report_webhook_url, embed)

    async def _post(self, url: str, embed: dict) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json={"username": "WebGuardian", "embeds": [embed]})
            # Discord answers 204 No Content on success
            if response.status_code < 400:
                logger.info(f"Discord message sent: {embed['title']}")
                return True
            logger.warning(f"Discord webhook returned {response.status_code}: {response.text[:200]}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Discord message: {e}")
            return False
