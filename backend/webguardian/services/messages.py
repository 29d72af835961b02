"""Plain-text message building shared by the notification channels."""
from datetime import datetime
from typing import List, Optional

from ..models import MonitoredSite
from .checker import CheckResult


def format_interval(seconds: Optional[int]) -> str:
    """Human readable check interval."""
    if not seconds:
        return "-"
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{seconds // 60} minutes"
    return f"{seconds // 3600} hours"


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def format_timestamp(timestamp: Optional[datetime]) -> str:
    return (timestamp or datetime.utcnow()).strftime("%Y-%m-%d %H:%M:%S UTC")


def build_subject(event: str, site: MonitoredSite) -> str:
    """Subject line, e.g. ``ALERT - Shop - https://shop.example``."""
    return f"{event.upper()} - {site.name} - {site.url}"


def result_lines(site: MonitoredSite, result: CheckResult) -> List[str]:
    """Key facts about a check, one per line."""
    lines = [
        f"Site: {site.name}",
        f"URL: {site.url}",
        f"Status: {site.current_status.value if site.current_status else '-'}",
        f"Outcome: {result.outcome.value}",
        f"Severity: {result.severity.value}",
        f"Time: {format_timestamp(result.timestamp)}",
    ]
    if result.status_code is not None:
        lines.append(f"HTTP status: {result.status_code}")
    if result.response_time_ms is not None:
        lines.append(f"Response time: {result.response_time_ms} ms")
    if result.content_size:
        lines.append(f"Content size: {format_size(result.content_size)}")
    if not result.content_check_passed:
        lines.append(f"Content check: expected '{site.content_check_string}' not found")
    if not result.ssl_check_passed:
        lines.append("SSL check: certificate validation failed")
    if result.error_message:
        lines.append(f"Details: {result.error_message}")
    return lines


def build_body(title: str, site: MonitoredSite, result: CheckResult) -> str:
    lines = [
        f"WebGuardian {title}",
        "=" * 40,
        "",
        *result_lines(site, result),
        f"Check interval: {format_interval(site.check_interval)}",
        "",
        "--",
        "WebGuardian Monitoring System",
    ]
    return "\n".join(lines)
