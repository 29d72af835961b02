"""Site schemas for API."""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import settings
from ..models import SiteStatus

URL_PATTERN = r"^https?://\S+$"


class SiteCreate(BaseModel):
    """Schema for registering a new site.

    Omitted interval, retry and SSL fields take the configured defaults.
    """
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., pattern=URL_PATTERN)
    check_interval: int = Field(
        default_factory=lambda: settings.default_check_interval_seconds, ge=1, le=86400
    )  # seconds
    response_time_threshold_ms: Optional[int] = Field(None, ge=1)
    max_retries: int = Field(default_factory=lambda: settings.default_max_retries, ge=0, le=10)
    content_check_string: Optional[str] = None
    check_content: bool = False
    ssl_check: bool = Field(default_factory=lambda: settings.check_ssl_by_default)
    notify_on_issue: bool = True


class SiteUpdate(BaseModel):
    """Schema for updating a site's configuration.

    Only the threshold and the content string can be cleared with null.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, pattern=URL_PATTERN)
    check_interval: Optional[int] = Field(None, ge=1, le=86400)
    response_time_threshold_ms: Optional[int] = Field(None, ge=1)
    max_retries: Optional[int] = Field(None, ge=0, le=10)
    content_check_string: Optional[str] = None
    check_content: Optional[bool] = None
    ssl_check: Optional[bool] = None
    notify_on_issue: Optional[bool] = None

    @field_validator(
        "name", "url", "check_interval", "max_retries", "check_content", "ssl_check", "notify_on_issue",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("must not be null")
        return v


class MaintenanceRequest(BaseModel):
    enabled: bool


class SiteResponse(BaseModel):
    """Schema for site in API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    url: str
    check_interval: int
    response_time_threshold_ms: Optional[int] = None
    max_retries: int
    content_check_string: Optional[str] = None
    check_content: bool
    ssl_check: bool
    notify_on_issue: bool
    maintenance_mode: bool
    current_status: SiteStatus
    created_at: Optional[datetime] = None
    schedule_state: Optional[str] = None
