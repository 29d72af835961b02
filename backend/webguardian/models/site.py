"""MonitoredSite model - web endpoints being monitored."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum

from ..config import settings
from ..database import Base
from .enums import SiteStatus


class MonitoredSite(Base):
    """A web endpoint probed on a fixed interval."""

    __tablename__ = "monitored_sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False, unique=True, index=True)
    check_interval = Column(Integer, default=300)  # seconds
    response_time_threshold_ms = Column(Integer, nullable=True)
    max_retries = Column(Integer, default=3)  # stored only, the probe never retries
    content_check_string = Column(String, nullable=True)
    check_content = Column(Boolean, default=False)
    ssl_check = Column(Boolean, default=True)
    notify_on_issue = Column(Boolean, default=True)
    maintenance_mode = Column(Boolean, default=False)
    current_status = Column(
        Enum(SiteStatus, native_enum=False, length=16),
        nullable=False,
        default=SiteStatus.UNKNOWN,
    )
    created_at = Column(DateTime, default=datetime.utcnow)

    def __init__(self, **kwargs):
        # Column defaults only apply on INSERT; transient sites need them too
        kwargs.setdefault("check_interval", settings.default_check_interval_seconds)
        kwargs.setdefault("max_retries", settings.default_max_retries)
        kwargs.setdefault("check_content", False)
        kwargs.setdefault("ssl_check", settings.check_ssl_by_default)
        kwargs.setdefault("notify_on_issue", True)
        kwargs.setdefault("maintenance_mode", False)
        kwargs.setdefault("current_status", SiteStatus.UNKNOWN)
        super().__init__(**kwargs)

    @property
    def is_https(self) -> bool:
        return (self.url or "").lower().startswith("https://")

    @property
    def content_check_enabled(self) -> bool:
        return bool(self.check_content and self.content_check_string)

    def __repr__(self) -> str:
        return f"<MonitoredSite id={self.id} url={self.url!r} status={self.current_status}>"
