"""Notification dispatcher - fans notifications out to every configured channel."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..models import MonitoredSite
from .checker import CheckResult
from .status_resolver import NotificationKind

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """A notification delivery mechanism (chat webhook, email, ...).

    Each method returns True when the message was accepted. Implementations
    enforce their own transport timeouts.
    """

    name = "channel"

    @abstractmethod
    async def send_alert(self, site: MonitoredSite, result: CheckResult) -> bool:
        """Notify that a site went down or degraded."""

    @abstractmethod
    async def send_recovery_notification(self, site: MonitoredSite, result: CheckResult) -> bool:
        """Notify that a failing site is back up."""

    @abstractmethod
    async def send_report(self, content: str, report_type: str) -> bool:
        """Deliver a periodic report."""


class NotificationDispatcher:
    """Delivers one notification through all channels concurrently.

    A channel that fails or raises never prevents delivery through the
    others. Delivery succeeds when at least one channel accepted it.
    """

    def __init__(self, channels: Optional[Iterable[NotificationChannel]] = None):
        self.channels: List[NotificationChannel] = list(channels or [])

    def add_channel(self, channel: NotificationChannel):
        self.channels.append(channel)
        logger.info(f"Notification channel added: {channel.name}")

    async def deliver(
        self,
        kind: NotificationKind,
        site: Optional[MonitoredSite] = None,
        result: Optional[CheckResult] = None,
        *,
        content: Optional[str] = None,
        report_type: Optional[str] = None,
        channels: Optional[Iterable[NotificationChannel]] = None,
    ) -> bool:
        """Send a notification of the given kind to every channel.

        Waits for all channels to finish before returning.

        Returns:
            True if at least one channel reported success
        """
        targets = list(self.channels if channels is None else channels)
        kind = NotificationKind(kind)
        subject = site.url if site is not None else report_type

        if not targets:
            logger.warning(f"No notification channels configured, {kind.value} for {subject} dropped")
            return False

        logger.debug(f"Sending {kind.value} for {subject} via {len(targets)} channel(s)")
        outcomes = await asyncio.gather(*[
            self._send_one(channel, kind, site, result, content, report_type)
            for channel in targets
        ])

        success_count = sum(1 for ok in outcomes if ok)
        logger.info(
            f"Notification {kind.value} for {subject}: "
            f"{success_count} success, {len(outcomes) - success_count} failed"
        )
        return success_count > 0

    async def _send_one(
        self,
        channel: NotificationChannel,
        kind: NotificationKind,
        site: Optional[MonitoredSite],
        result: Optional[CheckResult],
        content: Optional[str],
        report_type: Optional[str],
    ) -> bool:
        try:
            if kind == NotificationKind.ALERT:
                ok = await channel.send_alert(site, result)
            elif kind == NotificationKind.RECOVERY:
                ok = await channel.send_recovery_notification(site, result)
            else:
                ok = await channel.send_report(content or "", report_type or "")
            return bool(ok)
        except Exception as e:
            logger.error(f"Error sending {kind.value} via {channel.name}: {type(e).__name__}: {e}")
            return False

    async def send_alert(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self.deliver(NotificationKind.ALERT, site, result)

    async def send_recovery_notification(self, site: MonitoredSite, result: CheckResult) -> bool:
        return await self.deliver(NotificationKind.RECOVERY, site, result)

    async def send_report(self, content: str, report_type: str) -> bool:
        return await self.deliver(NotificationKind.REPORT, content=content, report_type=report_type)
