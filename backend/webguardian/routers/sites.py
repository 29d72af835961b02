"""Site management API endpoints."""
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..dependencies import get_monitoring_service, get_scheduler_service
from ..exceptions import DuplicateSiteError, SchedulerStoppedError, SiteNotFoundError
from ..models import MonitoredSite
from ..schemas.check import CheckHistory, CheckResultResponse
from ..schemas.site import MaintenanceRequest, SiteCreate, SiteResponse, SiteUpdate
from ..services.monitoring import MonitoringService
from ..services.scheduler import SchedulerService

router = APIRouter(prefix="/api/sites", tags=["sites"])


def _to_response(site: MonitoredSite, scheduler: SchedulerService) -> SiteResponse:
    response = SiteResponse.model_validate(site)
    response.schedule_state = scheduler.state(site.id).value
    return response


@router.get("", response_model=List[SiteResponse])
async def list_sites(
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """List all monitored sites."""
    sites = await monitoring.get_all_sites()
    return [_to_response(site, scheduler) for site in sites]


@router.post("", response_model=SiteResponse, status_code=201)
async def create_site(
    payload: SiteCreate,
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Register a site, schedule it and run a first check right away."""
    try:
        site = await monitoring.add_site(MonitoredSite(**payload.model_dump()))
    except DuplicateSiteError as e:
        raise HTTPException(status_code=409, detail=e.message)

    scheduler.schedule(site)
    scheduler.trigger_now(site)
    return _to_response(site, scheduler)


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(
    site_id: int,
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    try:
        site = await monitoring.get_site(site_id)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    return _to_response(site, scheduler)


@router.patch("/{site_id}", response_model=SiteResponse)
async def update_site(
    site_id: int,
    payload: SiteUpdate,
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Update a site's configuration; interval changes reschedule it."""
    changes = payload.model_dump(exclude_unset=True)
    try:
        async with scheduler.site_lock(site_id):
            site = await monitoring.update_site(site_id, **changes)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    except DuplicateSiteError as e:
        raise HTTPException(status_code=409, detail=e.message)

    if "check_interval" in changes:
        scheduler.reschedule(site)
    return _to_response(site, scheduler)


@router.delete("/{site_id}", status_code=204)
async def delete_site(
    site_id: int,
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Stop monitoring a site and delete its history."""
    try:
        site = await monitoring.remove_site(site_id)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    scheduler.unschedule(site)
    return Response(status_code=204)


@router.post("/{site_id}/check", response_model=CheckResultResponse)
async def check_site(
    site_id: int,
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Check a site immediately and return the result."""
    try:
        result = await scheduler.run_site_check(site_id)
    except SchedulerStoppedError as e:
        raise HTTPException(status_code=503, detail=e.message)
    if result is None:
        raise HTTPException(status_code=404, detail="Site not found")
    return CheckResultResponse.from_result(result)


@router.post("/{site_id}/maintenance", response_model=SiteResponse)
async def set_maintenance(
    site_id: int,
    payload: MaintenanceRequest,
    monitoring: MonitoringService = Depends(get_monitoring_service),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """Enter or leave maintenance mode.

    Waits for a running check of the site to finish first.
    Leaving maintenance resumes the recurring checks and runs one right away.
    """
    try:
        async with scheduler.site_lock(site_id):
            site = await monitoring.set_maintenance_mode(site_id, payload.enabled)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")

    if payload.enabled:
        scheduler.suspend(site)
    else:
        scheduler.resume(site)
        scheduler.trigger_now(site)
    return _to_response(site, scheduler)


@router.get("/{site_id}/history", response_model=CheckHistory)
async def get_history(
    site_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    hours: int = Query(24, ge=1, le=24 * 365),
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """Check results for a site, by default over the last 24 hours."""
    end = end or datetime.utcnow()
    start = start or end - timedelta(hours=hours)
    try:
        history = await monitoring.get_check_history(site_id, start, end)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")

    return CheckHistory(
        site_id=site_id,
        start=start,
        end=end,
        items=[CheckResultResponse.from_result(r) for r in history],
    )
