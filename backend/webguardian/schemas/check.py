"""Check result schemas for API."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from ..models import CheckOutcome, AlertSeverity
from ..services.checker import CheckResult


class CheckResultResponse(BaseModel):
    """One probe result."""
    site_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    outcome: CheckOutcome
    severity: AlertSeverity
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    content_size: int = 0
    content_check_passed: bool = True
    ssl_check_passed: bool = True
    error_message: Optional[str] = None
    ssl_expiry_days: Optional[int] = None

    @classmethod
    def from_result(cls, result: CheckResult) -> "CheckResultResponse":
        return cls(
            site_id=result.site_id,
            timestamp=result.timestamp,
            outcome=result.outcome,
            severity=result.severity,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            content_size=result.content_size,
            content_check_passed=result.content_check_passed,
            ssl_check_passed=result.ssl_check_passed,
            error_message=result.error_message,
            ssl_expiry_days=result.ssl_expiry_days,
        )


class CheckHistory(BaseModel):
    site_id: int
    start: datetime
    end: datetime
    items: List[CheckResultResponse]
