"""Site repository - persistence of monitored sites and their check history."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import MonitoredSite, CheckRecord, SiteStatus
from ..utils.db_utils import retry_on_lock
from .checker import CheckResult

logger = logging.getLogger(__name__)


class SiteRepository(Protocol):
    """Storage used by the monitoring engine.

    Implementations must be safe for concurrent use by checks of
    different sites.
    """

    async def find_by_url(self, url: str) -> Optional[MonitoredSite]: ...

    async def find_by_id(self, site_id: int) -> Optional[MonitoredSite]: ...

    async def find_all(self) -> List[MonitoredSite]: ...

    async def save(self, site: MonitoredSite) -> MonitoredSite: ...

    async def save_status(self, site_id: int, status: SiteStatus) -> bool: ...

    async def delete(self, site_id: int) -> None: ...

    async def save_check_result(self, result: CheckResult) -> CheckResult: ...

    async def get_check_history(self, site_id: int, start: datetime, end: datetime) -> List[CheckResult]: ...

    async def purge_check_history(self, before: datetime) -> int: ...


def record_from_result(result: CheckResult) -> CheckRecord:
    return CheckRecord(
        site_id=result.site_id,
        checked_at=result.timestamp or datetime.utcnow(),
        status_code=result.status_code,
        response_time_ms=result.response_time_ms,
        content_size=result.content_size,
        outcome=result.outcome,
        content_check_passed=result.content_check_passed,
        ssl_check_passed=result.ssl_check_passed,
        error_message=result.error_message,
        severity=result.severity,
        ssl_expiry_days=result.ssl_expiry_days,
    )


def result_from_record(record: CheckRecord) -> CheckResult:
    return CheckResult(
        outcome=record.outcome,
        severity=record.severity,
        site_id=record.site_id,
        timestamp=record.checked_at,
        status_code=record.status_code,
        response_time=(
            timedelta(milliseconds=record.response_time_ms)
            if record.response_time_ms is not None else None
        ),
        content_size=record.content_size or 0,
        content_check_passed=bool(record.content_check_passed),
        ssl_check_passed=bool(record.ssl_check_passed),
        error_message=record.error_message,
        ssl_expiry_days=record.ssl_expiry_days,
    )


class SqlSiteRepository:
    """SiteRepository backed by SQLAlchemy, one session per operation."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def _commit(self, session: AsyncSession):
        await retry_on_lock(session.commit)

    async def find_by_url(self, url: str) -> Optional[MonitoredSite]:
        async with self._session_factory() as session:
            result = await session.execute(select(MonitoredSite).where(MonitoredSite.url == url))
            return result.scalar_one_or_none()

    async def find_by_id(self, site_id: int) -> Optional[MonitoredSite]:
        async with self._session_factory() as session:
            return await session.get(MonitoredSite, site_id)

    async def find_all(self) -> List[MonitoredSite]:
        async with self._session_factory() as session:
            result = await session.execute(select(MonitoredSite).order_by(MonitoredSite.id))
            return list(result.scalars().all())

    async def save(self, site: MonitoredSite) -> MonitoredSite:
        """Insert or update a site keyed by id."""
        async with self._session_factory() as session:
            merged = await session.merge(site)
            await self._commit(session)
            if site.id is None:
                site.id = merged.id
            return merged

    async def save_status(self, site_id: int, status: SiteStatus) -> bool:
        """Write only the status of a site that is not in maintenance.

        Returns False, writing nothing, when the site is gone or is in
        maintenance. Other columns are left as currently stored.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(MonitoredSite)
                .where(MonitoredSite.id == site_id, MonitoredSite.maintenance_mode == False)  # noqa: E712
                .values(current_status=status)
            )
            await self._commit(session)
            return bool(result.rowcount)

    async def delete(self, site_id: int) -> None:
        """Delete a site together with its check history."""
        async with self._session_factory() as session:
            await session.execute(delete(CheckRecord).where(CheckRecord.site_id == site_id))
            await session.execute(delete(MonitoredSite).where(MonitoredSite.id == site_id))
            await self._commit(session)

    async def save_check_result(self, result: CheckResult) -> CheckResult:
        async with self._session_factory() as session:
            session.add(record_from_result(result))
            await self._commit(session)
        return result

    async def get_check_history(self, site_id: int, start: datetime, end: datetime) -> List[CheckResult]:
        """Check results for a site within [start, end], oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CheckRecord)
                .where(
                    CheckRecord.site_id == site_id,
                    CheckRecord.checked_at >= start,
                    CheckRecord.checked_at <= end,
                )
                .order_by(CheckRecord.checked_at)
            )
            return [result_from_record(record) for record in result.scalars().all()]

    async def purge_check_history(self, before: datetime) -> int:
        """Delete check results older than ``before``; returns the row count."""
        async with self._session_factory() as session:
            result = await session.execute(delete(CheckRecord).where(CheckRecord.checked_at < before))
            await self._commit(session)
            return result.rowcount or 0
