"""CheckRecord model - append-only history of probe results."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Enum

from ..database import Base
from .enums import CheckOutcome, AlertSeverity


class CheckRecord(Base):
    """Persisted snapshot of one probe execution."""

    __tablename__ = "check_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(
        Integer,
        ForeignKey("monitored_sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    checked_at = Column(DateTime, default=datetime.utcnow, index=True)
    status_code = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    content_size = Column(Integer, default=0)
    outcome = Column(Enum(CheckOutcome, native_enum=False, length=16), nullable=False)
    content_check_passed = Column(Boolean, default=True)
    ssl_check_passed = Column(Boolean, default=True)
    error_message = Column(String, nullable=True)
    severity = Column(Enum(AlertSeverity, native_enum=False, length=16), nullable=False)
    ssl_expiry_days = Column(Integer, nullable=True)
