"""Report schemas for API."""
from typing import Optional
from pydantic import BaseModel


class ReportResponse(BaseModel):
    report_type: str
    content: Optional[str] = None
    delivered: Optional[bool] = None
