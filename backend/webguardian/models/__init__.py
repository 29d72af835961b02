"""Database models."""
from .enums import SiteStatus, CheckOutcome, AlertSeverity
from .site import MonitoredSite
from .check_record import CheckRecord

__all__ = ["SiteStatus", "CheckOutcome", "AlertSeverity", "MonitoredSite", "CheckRecord"]
