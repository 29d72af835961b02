from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from conftest import GatedChecker, RecordingChannel, failure, success
from webguardian.database import build_engine, create_tables
from webguardian.models import AlertSeverity, CheckOutcome, MonitoredSite, SiteStatus
from webguardian.services.monitoring import MonitoringService
from webguardian.services.notifier import NotificationDispatcher
from webguardian.services.repository import SqlSiteRepository


@pytest_asyncio.fixture
async def sql_repository(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'webguardian.db'}")
    await create_tables(engine)
    yield SqlSiteRepository(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.mark.asyncio
async def test_save_assigns_id_and_defaults(sql_repository) -> None:
    site = MonitoredSite(name="A", url="https://a.test")
    saved = await sql_repository.save(site)

    assert saved.id is not None
    assert site.id == saved.id

    loaded = await sql_repository.find_by_id(saved.id)
    assert loaded.url == "https://a.test"
    assert loaded.check_interval == 300
    assert loaded.ssl_check is True
    assert loaded.maintenance_mode is False
    assert loaded.current_status == SiteStatus.UNKNOWN
    assert loaded.created_at is not None


@pytest.mark.asyncio
async def test_save_is_upsert_by_id(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))

    loaded = await sql_repository.find_by_id(site.id)
    loaded.current_status = SiteStatus.DOWN
    loaded.check_interval = 60
    await sql_repository.save(loaded)

    sites = await sql_repository.find_all()
    assert len(sites) == 1
    assert sites[0].current_status == SiteStatus.DOWN
    assert sites[0].check_interval == 60


@pytest.mark.asyncio
async def test_find_by_url(sql_repository) -> None:
    await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))

    assert (await sql_repository.find_by_url("https://a.test")).name == "A"
    assert await sql_repository.find_by_url("https://b.test") is None
    assert await sql_repository.find_by_id(999) is None


@pytest.mark.asyncio
async def test_check_history_range_and_order(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))
    base = datetime(2026, 10, 1, 12, 0, 0)
    for offset, result in [(2, failure()), (0, success()), (1, success()), (5, success())]:
        await sql_repository.save_check_result(result.stamped(site.id, base + timedelta(hours=offset)))

    history = await sql_repository.get_check_history(site.id, base, base + timedelta(hours=2))

    assert [r.timestamp for r in history] == [base + timedelta(hours=h) for h in (0, 1, 2)]
    assert history[-1].outcome == CheckOutcome.FAILURE
    assert history[-1].severity == AlertSeverity.HIGH
    assert history[-1].status_code == 503
    assert all(r.site_id == site.id for r in history)


@pytest.mark.asyncio
async def test_check_result_fields_survive_storage(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))
    at = datetime(2026, 10, 2, 8, 30, 0)
    stored = success(
        response_time=timedelta(milliseconds=250),
        content_size=1024,
        ssl_expiry_days=42,
    ).stamped(site.id, at)
    await sql_repository.save_check_result(stored)

    [loaded] = await sql_repository.get_check_history(site.id, at, at)

    assert loaded.response_time_ms == 250
    assert loaded.content_size == 1024
    assert loaded.ssl_expiry_days == 42
    assert loaded.content_check_passed is True
    assert loaded.error_message is None


@pytest.mark.asyncio
async def test_delete_removes_site_and_history(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))
    now = datetime.utcnow()
    await sql_repository.save_check_result(success().stamped(site.id, now))

    await sql_repository.delete(site.id)

    assert await sql_repository.find_by_id(site.id) is None
    assert await sql_repository.get_check_history(site.id, now - timedelta(days=1), now) == []


@pytest.mark.asyncio
async def test_purge_check_history(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))
    now = datetime(2026, 10, 10)
    await sql_repository.save_check_result(success().stamped(site.id, now - timedelta(days=400)))
    await sql_repository.save_check_result(success().stamped(site.id, now - timedelta(days=1)))

    deleted = await sql_repository.purge_check_history(now - timedelta(days=365))

    assert deleted == 1
    remaining = await sql_repository.get_check_history(site.id, now - timedelta(days=500), now)
    assert len(remaining) == 1


@pytest.mark.asyncio
async def test_save_status_leaves_other_columns(sql_repository) -> None:
    site = await sql_repository.save(MonitoredSite(name="A", url="https://a.test"))
    stale = await sql_repository.find_by_id(site.id)
    renamed = await sql_repository.find_by_id(site.id)
    renamed.name = "Shop"
    await sql_repository.save(renamed)

    assert await sql_repository.save_status(stale.id, SiteStatus.DOWN) is True

    loaded = await sql_repository.find_by_id(site.id)
    assert loaded.current_status == SiteStatus.DOWN
    assert loaded.name == "Shop"


@pytest.mark.asyncio
async def test_save_status_skips_maintenance_and_missing_sites(sql_repository) -> None:
    site = await sql_repository.save(
        MonitoredSite(
            name="A",
            url="https://a.test",
            maintenance_mode=True,
            current_status=SiteStatus.MAINTENANCE,
        )
    )

    assert await sql_repository.save_status(site.id, SiteStatus.DOWN) is False
    assert await sql_repository.save_status(999, SiteStatus.DOWN) is False
    assert (await sql_repository.find_by_id(site.id)).current_status == SiteStatus.MAINTENANCE


async def _check_while(sql_repository, change) -> tuple[MonitoredSite, RecordingChannel]:
    """Run a failing check of a new site, applying ``change`` while it is in flight."""
    checker = GatedChecker(failure())
    channel = RecordingChannel()
    service = MonitoringService(checker, sql_repository, NotificationDispatcher([channel]))
    site = await service.add_site(MonitoredSite(name="A", url="https://a.test"))

    check = asyncio.ensure_future(service.run_check_by_id(site.id))
    await asyncio.wait_for(checker.started.wait(), 2)
    await change(service, site.id)
    checker.release()
    await check

    return await sql_repository.find_by_id(site.id), channel


@pytest.mark.asyncio
async def test_maintenance_entered_during_check_survives_in_database(sql_repository) -> None:
    async def enter_maintenance(service: MonitoringService, site_id: int) -> None:
        await service.set_maintenance_mode(site_id, True)

    stored, channel = await _check_while(sql_repository, enter_maintenance)

    assert stored.maintenance_mode is True
    assert stored.current_status == SiteStatus.MAINTENANCE
    assert channel.calls == []


@pytest.mark.asyncio
async def test_update_during_check_survives_in_database(sql_repository) -> None:
    async def rename(service: MonitoringService, site_id: int) -> None:
        await service.update_site(site_id, name="Shop", check_interval=60)

    stored, channel = await _check_while(sql_repository, rename)

    assert stored.name == "Shop"
    assert stored.check_interval == 60
    assert stored.current_status == SiteStatus.DOWN
    assert channel.kinds() == ["alert"]
