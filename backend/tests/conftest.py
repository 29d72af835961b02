from __future__ import annotations

import asyncio
from datetime import datetime
from itertools import count
from typing import Callable

import pytest

from webguardian.models import CheckOutcome, AlertSeverity, MonitoredSite, SiteStatus
from webguardian.services.checker import CheckResult
from webguardian.services.notifier import NotificationChannel


class InMemoryRepository:
    """Dict-backed stand-in for the SQL repository."""

    def __init__(self) -> None:
        self.sites: dict[int, MonitoredSite] = {}
        self.results: list[CheckResult] = []
        self.saves = 0
        self.status_writes = 0
        self._ids = count(1)

    async def find_by_url(self, url: str):
        return next((s for s in self.sites.values() if s.url == url), None)

    async def find_by_id(self, site_id: int):
        return self.sites.get(site_id)

    async def find_all(self):
        return [self.sites[k] for k in sorted(self.sites)]

    async def save(self, site: MonitoredSite) -> MonitoredSite:
        if site.id is None:
            site.id = next(self._ids)
        self.sites[site.id] = site
        self.saves += 1
        return site

    async def save_status(self, site_id: int, status: SiteStatus) -> bool:
        site = self.sites.get(site_id)
        if site is None or site.maintenance_mode:
            return False
        site.current_status = status
        self.status_writes += 1
        return True

    async def delete(self, site_id: int) -> None:
        self.sites.pop(site_id, None)
        self.results = [r for r in self.results if r.site_id != site_id]

    async def save_check_result(self, result: CheckResult) -> CheckResult:
        self.results.append(result)
        return result

    async def get_check_history(self, site_id: int, start: datetime, end: datetime):
        return sorted(
            (r for r in self.results if r.site_id == site_id and start <= r.timestamp <= end),
            key=lambda r: r.timestamp,
        )

    async def purge_check_history(self, before: datetime) -> int:
        kept = [r for r in self.results if r.timestamp >= before]
        deleted = len(self.results) - len(kept)
        self.results = kept
        return deleted


class RecordingChannel(NotificationChannel):
    """Channel that records every call and answers with a fixed verdict."""

    def __init__(self, name: str = "recording", ok: bool = True, error: Exception | None = None) -> None:
        self.name = name
        self.ok = ok
        self.error = error
        self.calls: list[tuple] = []

    async def _answer(self, *call) -> bool:
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.ok

    async def send_alert(self, site, result) -> bool:
        return await self._answer("alert", site.url, result.outcome)

    async def send_recovery_notification(self, site, result) -> bool:
        return await self._answer("recovery", site.url, result.outcome)

    async def send_report(self, content: str, report_type: str) -> bool:
        return await self._answer("report", report_type, content)

    def kinds(self) -> list[str]:
        return [call[0] for call in self.calls]


class ScriptedChecker:
    """Checker returning pre-built results in order, the last one repeating."""

    def __init__(self, *results: CheckResult) -> None:
        self.results = list(results) or [success()]
        self.checked: list[str] = []

    async def check(self, site: MonitoredSite) -> CheckResult:
        self.checked.append(site.url)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class GatedChecker:
    """Checker that holds every check until ``release`` is called."""

    def __init__(self, result: CheckResult) -> None:
        self.result = result
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    async def check(self, site: MonitoredSite) -> CheckResult:
        self.started.set()
        await self._gate.wait()
        return self.result

    def release(self) -> None:
        self._gate.set()


def success(**kwargs) -> CheckResult:
    return CheckResult(outcome=CheckOutcome.SUCCESS, status_code=200, **kwargs)


def failure(severity: AlertSeverity = AlertSeverity.HIGH, status_code: int = 503) -> CheckResult:
    return CheckResult(outcome=CheckOutcome.FAILURE, severity=severity, status_code=status_code)


def timeout() -> CheckResult:
    return CheckResult(outcome=CheckOutcome.TIMEOUT, severity=AlertSeverity.HIGH, error_message="timed out")


def error() -> CheckResult:
    return CheckResult(outcome=CheckOutcome.ERROR, severity=AlertSeverity.HIGH, error_message="refused")


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def make_site() -> Callable[..., MonitoredSite]:
    def _make(**kwargs) -> MonitoredSite:
        kwargs.setdefault("name", "A")
        kwargs.setdefault("url", "https://a.test")
        return MonitoredSite(**kwargs)

    return _make


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout_s)
