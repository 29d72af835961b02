"""Services for checking, scheduling, alerting and reporting."""
from .checker import CheckerService, CheckResult
from .monitoring import MonitoringService
from .notifier import NotificationChannel, NotificationDispatcher
from .reporter import ReportService
from .repository import SiteRepository, SqlSiteRepository
from .scheduler import SchedulerService

__all__ = [
    "CheckerService",
    "CheckResult",
    "MonitoringService",
    "NotificationChannel",
    "NotificationDispatcher",
    "ReportService",
    "SiteRepository",
    "SqlSiteRepository",
    "SchedulerService",
]
