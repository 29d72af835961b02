"""Monitoring service - runs checks, tracks site status and triggers notifications."""
import logging
from datetime import datetime
from typing import List, Optional

from ..exceptions import DuplicateSiteError, SiteNotFoundError
from ..models import MonitoredSite, SiteStatus
from .checker import CheckerService, CheckResult
from .notifier import NotificationDispatcher
from .repository import SiteRepository
from .status_resolver import NotificationKind, notification_for, resolve_status

logger = logging.getLogger(__name__)

# Fields a configuration change may touch; status is owned by the checks
UPDATABLE_FIELDS = {
    "name",
    "url",
    "check_interval",
    "response_time_threshold_ms",
    "max_retries",
    "content_check_string",
    "check_content",
    "ssl_check",
    "notify_on_issue",
}


class MonitoringService:
    """Check orchestrator and site management.

    Holds no per-site state: every check works on the site as currently
    stored in the repository.
    """

    def __init__(
        self,
        checker: CheckerService,
        repository: SiteRepository,
        dispatcher: NotificationDispatcher,
    ):
        self.checker = checker
        self.repository = repository
        self.dispatcher = dispatcher

    async def run_check(self, site: MonitoredSite) -> CheckResult:
        """Check a site, record the result and notify on status transitions.

        Notification failures are logged and never fail the check.
        Repository errors propagate.
        """
        if site.maintenance_mode:
            logger.info(f"Site {site.url} in maintenance, check skipped")
            return CheckResult.maintenance(site.id)

        result = await self.checker.check(site)
        result = result.stamped(site.id, datetime.utcnow())
        await self.repository.save_check_result(result)

        previous_status = site.current_status
        new_status = resolve_status(result.outcome)
        logger.debug(f"Site {site.url}: {result.outcome.value} ({previous_status} -> {new_status})")

        if previous_status != new_status:
            # Status only; configuration and maintenance changed during the check stay as stored
            if not await self.repository.save_status(site.id, new_status):
                logger.info(f"Site {site.url} entered maintenance or was removed during its check")
                return result
            site.current_status = new_status
            logger.info(f"Site {site.url} status changed: {previous_status} -> {new_status.value}")

            if site.notify_on_issue:
                kind = notification_for(previous_status, new_status)
                if kind is not None:
                    await self._notify(kind, site, result)

        return result

    async def run_check_by_id(self, site_id: int) -> Optional[CheckResult]:
        """Fetch a site fresh and check it; None if it no longer exists."""
        site = await self.repository.find_by_id(site_id)
        if site is None:
            logger.warning(f"Site with id {site_id} not found, check skipped")
            return None
        return await self.run_check(site)

    async def _notify(self, kind: NotificationKind, site: MonitoredSite, result: CheckResult):
        try:
            delivered = await self.dispatcher.deliver(kind, site, result)
        except Exception as e:
            logger.error(f"Error dispatching {kind.value} for {site.url}: {e}")
            return
        if not delivered:
            logger.warning(f"{kind.value.capitalize()} for {site.url} was not delivered by any channel")

    async def add_site(self, site: MonitoredSite) -> MonitoredSite:
        """Register a new site. Its status always starts as UNKNOWN.

        Raises:
            DuplicateSiteError: If a site with the same URL exists
        """
        if await self.repository.find_by_url(site.url) is not None:
            raise DuplicateSiteError(site.url)

        site.current_status = SiteStatus.UNKNOWN
        saved = await self.repository.save(site)
        logger.info(f"Site added: {saved.url} (id={saved.id})")
        return saved

    async def remove_site(self, site_id: int) -> MonitoredSite:
        site = await self.get_site(site_id)
        await self.repository.delete(site.id)
        logger.info(f"Site removed: {site.url}")
        return site

    async def remove_site_by_url(self, url: str) -> MonitoredSite:
        site = await self.repository.find_by_url(url)
        if site is None:
            raise SiteNotFoundError(url)
        await self.repository.delete(site.id)
        logger.info(f"Site removed: {site.url}")
        return site

    async def update_site(self, site_id: int, **changes) -> MonitoredSite:
        """Apply configuration changes to a site.

        Raises:
            SiteNotFoundError: If the site does not exist
            DuplicateSiteError: If the new URL belongs to another site
            ValueError: For fields that cannot be changed this way
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        site = await self.get_site(site_id)
        new_url = changes.get("url")
        if new_url and new_url != site.url:
            existing = await self.repository.find_by_url(new_url)
            if existing is not None and existing.id != site.id:
                raise DuplicateSiteError(new_url)

        for field, value in changes.items():
            setattr(site, field, value)
        return await self.repository.save(site)

    async def set_maintenance_mode(self, site_id: int, enabled: bool) -> MonitoredSite:
        """Toggle maintenance mode.

        Entering maintenance sets the status to MAINTENANCE; leaving it
        resets the status to UNKNOWN so the next check starts clean.
        """
        site = await self.get_site(site_id)
        site.maintenance_mode = enabled
        site.current_status = SiteStatus.MAINTENANCE if enabled else SiteStatus.UNKNOWN
        saved = await self.repository.save(site)
        logger.info(f"Maintenance mode {'enabled' if enabled else 'disabled'} for {site.url}")
        return saved

    async def get_site(self, site_id: int) -> MonitoredSite:
        site = await self.repository.find_by_id(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        return site

    async def get_all_sites(self) -> List[MonitoredSite]:
        return await self.repository.find_all()

    async def get_check_history(self, site_id: int, start: datetime, end: datetime) -> List[CheckResult]:
        site = await self.get_site(site_id)
        return await self.repository.get_check_history(site.id, start, end)
