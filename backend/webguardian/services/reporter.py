"""Report service - builds availability summaries and sends them to the channels."""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ..exceptions import SiteNotFoundError
from ..models import CheckOutcome, SiteStatus
from .checker import CheckResult
from .messages import format_interval
from .notifier import NotificationDispatcher
from .repository import SiteRepository

logger = logging.getLogger(__name__)

INCIDENT_OUTCOMES = (CheckOutcome.FAILURE, CheckOutcome.ERROR)

DEFAULT_SITE_REPORT_DAYS = 7


def uptime_percent(history: List[CheckResult]) -> float:
    """Share of successful checks, 0 when there is no data."""
    if not history:
        return 0.0
    success = sum(1 for r in history if r.outcome == CheckOutcome.SUCCESS)
    return success / len(history) * 100


def average_response_ms(history: List[CheckResult]) -> float:
    times = [r.response_time_ms for r in history if r.response_time_ms is not None]
    if not times:
        return 0.0
    return sum(times) / len(times)


def count_incidents(history: List[CheckResult]) -> int:
    return sum(1 for r in history if r.outcome in INCIDENT_OUTCOMES)


def day_period(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime.combine(now.date(), datetime.min.time())
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def week_period(now: datetime) -> Tuple[datetime, datetime]:
    """Week starting on Monday."""
    monday = now.date() - timedelta(days=now.weekday())
    start = datetime.combine(monday, datetime.min.time())
    return start, start + timedelta(weeks=1) - timedelta(microseconds=1)


def month_period(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        next_month = datetime(now.year + 1, 1, 1)
    else:
        next_month = datetime(now.year, now.month + 1, 1)
    return start, next_month - timedelta(microseconds=1)


class ReportService:
    """Generates periodic reports and delivers them through the dispatcher."""

    def __init__(self, repository: SiteRepository, dispatcher: NotificationDispatcher):
        self.repository = repository
        self.dispatcher = dispatcher

    async def build_report(self, start: datetime, end: datetime, report_type: str) -> str:
        """Plain-text availability summary of all sites for a period."""
        sites = await self.repository.find_all()
        if not sites:
            return "No monitored sites."

        counts = {status: 0 for status in SiteStatus}
        for site in sites:
            counts[site.current_status or SiteStatus.UNKNOWN] += 1

        lines = [
            f"WebGuardian {report_type} Report",
            "=" * 40,
            f"Period: {start.date().isoformat()} to {end.date().isoformat()}",
            "",
            "--- Summary ---",
            f"Total sites: {len(sites)}",
            f"Up: {counts[SiteStatus.UP]}",
            f"Degraded: {counts[SiteStatus.DEGRADED]}",
            f"Down: {counts[SiteStatus.DOWN]}",
            f"Maintenance: {counts[SiteStatus.MAINTENANCE]}",
            f"Unknown: {counts[SiteStatus.UNKNOWN]}",
            "",
            "--- Sites ---",
        ]

        for site in sites:
            history = await self.repository.get_check_history(site.id, start, end)
            lines.append("")
            lines.append(f"{site.name} ({site.url})")
            lines.append(f"  Status: {site.current_status.value}")
            if not history:
                lines.append("  No data for the period")
                continue
            lines.append(f"  Checks: {len(history)}")
            lines.append(f"  Uptime: {uptime_percent(history):.2f}%")
            lines.append(f"  Average response time: {average_response_ms(history):.2f} ms")
            lines.append(f"  Incidents: {count_incidents(history)}")

        return "\n".join(lines)

    async def build_site_report(self, site_id: int, days: int = DEFAULT_SITE_REPORT_DAYS) -> str:
        """Performance report of one site over the last ``days`` days.

        Raises:
            SiteNotFoundError: If the site does not exist
        """
        if days <= 0:
            days = DEFAULT_SITE_REPORT_DAYS

        site = await self.repository.find_by_id(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)

        now = datetime.utcnow()
        start = datetime.combine(now.date() - timedelta(days=days), datetime.min.time())
        history = await self.repository.get_check_history(site.id, start, now)

        lines = [
            f"WebGuardian performance report for {site.name}",
            "=" * 40,
            f"Period: last {days} days",
            f"URL: {site.url}",
            f"Check interval: {format_interval(site.check_interval)}",
            f"Status: {site.current_status.value}",
        ]
        if not history:
            lines.append("No data for the period")
            return "\n".join(lines)

        lines.extend([
            f"Checks: {len(history)}",
            f"Uptime: {uptime_percent(history):.2f}%",
            f"Average response time: {average_response_ms(history):.2f} ms",
            "",
            "--- Incidents per day ---",
        ])
        incidents_by_day: Dict[date, int] = defaultdict(int)
        response_by_day: Dict[date, List[int]] = defaultdict(list)
        for result in history:
            day = result.timestamp.date()
            if result.outcome in INCIDENT_OUTCOMES:
                incidents_by_day[day] += 1
            if result.response_time_ms is not None:
                response_by_day[day].append(result.response_time_ms)

        if not incidents_by_day:
            lines.append("No incidents for the period.")
        for day in sorted(incidents_by_day):
            lines.append(f"{day.isoformat()}: {incidents_by_day[day]}")

        lines.append("")
        lines.append("--- Average response time per day ---")
        for day in sorted(response_by_day):
            times = response_by_day[day]
            lines.append(f"{day.isoformat()}: {sum(times) / len(times):.2f} ms")

        return "\n".join(lines)

    async def send_daily_report(self, now: Optional[datetime] = None) -> bool:
        start, end = day_period(now or datetime.utcnow())
        return await self._send(start, end, "Daily")

    async def send_weekly_report(self, now: Optional[datetime] = None) -> bool:
        start, end = week_period(now or datetime.utcnow())
        return await self._send(start, end, "Weekly")

    async def send_monthly_report(self, now: Optional[datetime] = None) -> bool:
        start, end = month_period(now or datetime.utcnow())
        return await self._send(start, end, "Monthly")

    async def _send(self, start: datetime, end: datetime, report_type: str) -> bool:
        logger.info(f"Generating {report_type.lower()} report for {start.date()} to {end.date()}")
        content = await self.build_report(start, end, report_type)
        return await self.dispatcher.send_report(content, report_type)
