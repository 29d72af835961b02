"""Exceptions raised by site management operations."""
from typing import Optional


class WebGuardianError(Exception):
    """Base class for configuration errors reported to the caller."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DuplicateSiteError(WebGuardianError):
    """A site with the same URL is already monitored."""

    def __init__(self, url: str):
        super().__init__(f"A site with this URL already exists: {url}", {"url": url})
        self.url = url


class SiteNotFoundError(WebGuardianError):
    """No site matches the given id or URL."""

    def __init__(self, key):
        super().__init__(f"Site not found: {key}", {"key": key})
        self.key = key


class SchedulerStoppedError(WebGuardianError):
    """The scheduler was shut down and accepts no more checks."""

    def __init__(self):
        super().__init__("Scheduler is shut down")
