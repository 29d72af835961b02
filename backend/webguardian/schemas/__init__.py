"""Pydantic schemas for API request/response models."""
from .site import SiteCreate, SiteUpdate, SiteResponse, MaintenanceRequest
from .check import CheckResultResponse, CheckHistory
from .report import ReportResponse

__all__ = [
    "SiteCreate",
    "SiteUpdate",
    "SiteResponse",
    "MaintenanceRequest",
    "CheckResultResponse",
    "CheckHistory",
    "ReportResponse",
]
