from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import GatedChecker, RecordingChannel, ScriptedChecker, error, failure, success, timeout
from webguardian.exceptions import DuplicateSiteError, SiteNotFoundError
from webguardian.models import AlertSeverity, CheckOutcome, SiteStatus
from webguardian.services.checker import CertificateStatus, CheckerService
from webguardian.services.monitoring import MonitoringService
from webguardian.services.notifier import NotificationDispatcher


def _service(repository, checker, *channels) -> MonitoringService:
    return MonitoringService(checker, repository, NotificationDispatcher(channels))


@pytest.mark.asyncio
async def test_site_lifecycle_up_down_up(repository, make_site) -> None:
    responses = [(200, "system OK"), (503, "unavailable"), (200, "system OK")]

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = responses.pop(0)
        return httpx.Response(status, text=body)

    async def valid_cert(host: str, port: int) -> CertificateStatus:
        return CertificateStatus(valid=True, expiry_days=60)

    checker = CheckerService(transport=httpx.MockTransport(handler), certificate_verifier=valid_cert)
    channel = RecordingChannel()
    service = _service(repository, checker, channel)
    site = await service.add_site(
        make_site(check_interval=300, check_content=True, content_check_string="OK")
    )

    first = await service.run_check(site)
    assert first.outcome == CheckOutcome.SUCCESS
    assert first.severity == AlertSeverity.NONE
    assert first.content_check_passed is True
    assert site.current_status == SiteStatus.UP
    assert channel.calls == []

    second = await service.run_check(site)
    assert second.outcome == CheckOutcome.FAILURE
    assert second.severity == AlertSeverity.HIGH
    assert site.current_status == SiteStatus.DOWN
    assert channel.kinds() == ["alert"]

    await service.run_check(site)
    assert site.current_status == SiteStatus.UP
    assert channel.kinds() == ["alert", "recovery"]
    assert len(repository.results) == 3


@pytest.mark.asyncio
async def test_consecutive_failures_alert_once(repository, make_site) -> None:
    channel = RecordingChannel()
    service = _service(repository, ScriptedChecker(failure()), channel)
    site = await service.add_site(make_site())

    await service.run_check(site)
    await service.run_check(site)
    await service.run_check(site)

    assert channel.kinds() == ["alert"]
    assert len(repository.results) == 3


@pytest.mark.asyncio
async def test_maintenance_skips_probe_and_status(repository, make_site) -> None:
    checker = ScriptedChecker(failure())
    channel = RecordingChannel()
    service = _service(repository, checker, channel)
    site = await service.add_site(make_site())
    site = await service.set_maintenance_mode(site.id, True)
    saves = repository.saves

    result = await service.run_check(site)

    assert result.outcome == CheckOutcome.SUCCESS
    assert result.severity == AlertSeverity.NONE
    assert checker.checked == []
    assert repository.results == []
    assert repository.saves == saves
    assert site.current_status == SiteStatus.MAINTENANCE
    assert channel.calls == []


@pytest.mark.asyncio
async def test_leaving_maintenance_resets_status(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site())

    site = await service.set_maintenance_mode(site.id, True)
    assert site.current_status == SiteStatus.MAINTENANCE
    site = await service.set_maintenance_mode(site.id, False)
    assert site.maintenance_mode is False
    assert site.current_status == SiteStatus.UNKNOWN


@pytest.mark.asyncio
async def test_maintenance_entered_during_check_is_kept(repository, make_site) -> None:
    checker = GatedChecker(failure())
    channel = RecordingChannel()
    service = _service(repository, checker, channel)
    site = await service.add_site(make_site())

    check = asyncio.ensure_future(service.run_check_by_id(site.id))
    await asyncio.wait_for(checker.started.wait(), 2)
    await service.set_maintenance_mode(site.id, True)
    checker.release()
    result = await check

    assert result.outcome == CheckOutcome.FAILURE
    stored = await service.get_site(site.id)
    assert stored.maintenance_mode is True
    assert stored.current_status == SiteStatus.MAINTENANCE
    assert repository.status_writes == 0
    assert channel.calls == []


@pytest.mark.asyncio
async def test_status_change_writes_status_only(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker(failure()), RecordingChannel())
    site = await service.add_site(make_site())
    saves = repository.saves

    await service.run_check(site)
    await service.run_check(site)

    assert site.current_status == SiteStatus.DOWN
    assert repository.saves == saves
    assert repository.status_writes == 1


@pytest.mark.asyncio
async def test_check_of_removed_site_does_not_notify(repository, make_site) -> None:
    checker = GatedChecker(failure())
    channel = RecordingChannel()
    service = _service(repository, checker, channel)
    site = await service.add_site(make_site())

    check = asyncio.ensure_future(service.run_check(site))
    await asyncio.wait_for(checker.started.wait(), 2)
    await service.remove_site(site.id)
    checker.release()
    await check

    assert repository.sites == {}
    assert channel.calls == []


@pytest.mark.asyncio
async def test_notify_on_issue_disabled(repository, make_site) -> None:
    channel = RecordingChannel()
    service = _service(repository, ScriptedChecker(failure()), channel)
    site = await service.add_site(make_site(notify_on_issue=False))

    await service.run_check(site)

    assert site.current_status == SiteStatus.DOWN
    assert channel.calls == []


@pytest.mark.asyncio
async def test_timeout_degrades_then_recovers(repository, make_site) -> None:
    channel = RecordingChannel()
    service = _service(repository, ScriptedChecker(success(), timeout(), success()), channel)
    site = await service.add_site(make_site())

    await service.run_check(site)
    await service.run_check(site)
    assert site.current_status == SiteStatus.DEGRADED
    await service.run_check(site)

    assert site.current_status == SiteStatus.UP
    assert channel.kinds() == ["alert", "recovery"]


@pytest.mark.asyncio
async def test_error_moves_to_unknown_silently(repository, make_site) -> None:
    channel = RecordingChannel()
    service = _service(repository, ScriptedChecker(success(), error()), channel)
    site = await service.add_site(make_site())

    await service.run_check(site)
    await service.run_check(site)

    assert site.current_status == SiteStatus.UNKNOWN
    assert channel.calls == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_check(repository, make_site) -> None:
    broken = RecordingChannel(error=ConnectionError("smtp down"))
    service = _service(repository, ScriptedChecker(failure()), broken)
    site = await service.add_site(make_site())

    result = await service.run_check(site)

    assert result.outcome == CheckOutcome.FAILURE
    assert site.current_status == SiteStatus.DOWN
    assert broken.kinds() == ["alert"]


@pytest.mark.asyncio
async def test_dispatcher_crash_does_not_fail_check(repository, make_site, monkeypatch) -> None:
    service = _service(repository, ScriptedChecker(failure()), RecordingChannel())

    async def crash(*args, **kwargs):
        raise RuntimeError("dispatcher bug")

    monkeypatch.setattr(service.dispatcher, "deliver", crash)
    site = await service.add_site(make_site())

    result = await service.run_check(site)
    assert result.outcome == CheckOutcome.FAILURE


@pytest.mark.asyncio
async def test_repository_failure_propagates(repository, make_site, monkeypatch) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site())

    async def broken(result):
        raise RuntimeError("disk full")

    monkeypatch.setattr(repository, "save_check_result", broken)
    with pytest.raises(RuntimeError):
        await service.run_check(site)


@pytest.mark.asyncio
async def test_results_are_stamped(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site())

    result = await service.run_check(site)

    assert result.site_id == site.id
    assert result.timestamp is not None
    assert repository.results == [result]


@pytest.mark.asyncio
async def test_add_site_rejects_duplicate_url(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    await service.add_site(make_site())

    with pytest.raises(DuplicateSiteError):
        await service.add_site(make_site(name="other"))
    assert len(repository.sites) == 1


@pytest.mark.asyncio
async def test_add_site_starts_unknown(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site(current_status=SiteStatus.UP))
    assert site.id is not None
    assert site.current_status == SiteStatus.UNKNOWN


@pytest.mark.asyncio
async def test_run_check_by_id_unknown_site(repository) -> None:
    service = _service(repository, ScriptedChecker())
    assert await service.run_check_by_id(42) is None


@pytest.mark.asyncio
async def test_update_site(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site())
    other = await service.add_site(make_site(url="https://b.test"))

    updated = await service.update_site(site.id, name="Shop", check_interval=60)
    assert updated.name == "Shop"
    assert updated.check_interval == 60

    with pytest.raises(DuplicateSiteError):
        await service.update_site(site.id, url=other.url)
    with pytest.raises(ValueError):
        await service.update_site(site.id, current_status=SiteStatus.UP)
    with pytest.raises(SiteNotFoundError):
        await service.update_site(99, name="x")


@pytest.mark.asyncio
async def test_remove_site(repository, make_site) -> None:
    service = _service(repository, ScriptedChecker())
    site = await service.add_site(make_site())
    await service.run_check(site)

    await service.remove_site(site.id)

    assert repository.sites == {}
    assert repository.results == []
    with pytest.raises(SiteNotFoundError):
        await service.remove_site(site.id)
    with pytest.raises(SiteNotFoundError):
        await service.remove_site_by_url(site.url)
