"""Report API endpoints."""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_report_service
from ..exceptions import SiteNotFoundError
from ..schemas.report import ReportResponse
from ..services.reporter import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/summary", response_model=ReportResponse)
async def get_summary(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    reporter: ReportService = Depends(get_report_service),
):
    """Build a report for a custom period (default: last 24 hours) without sending it."""
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=1)
    if start > end:
        raise HTTPException(status_code=400, detail="start must be before end")
    content = await reporter.build_report(start, end, "Custom")
    return ReportResponse(report_type="custom", content=content)


@router.get("/sites/{site_id}", response_model=ReportResponse)
async def get_site_report(
    site_id: int,
    days: int = Query(7),
    reporter: ReportService = Depends(get_report_service),
):
    try:
        content = await reporter.build_site_report(site_id, days)
    except SiteNotFoundError:
        raise HTTPException(status_code=404, detail="Site not found")
    return ReportResponse(report_type="site", content=content)


@router.post("/{report_type}", response_model=ReportResponse)
async def send_report(
    report_type: str,
    reporter: ReportService = Depends(get_report_service),
):
    """Generate a daily, weekly or monthly report and send it to all channels."""
    senders = {
        "daily": reporter.send_daily_report,
        "weekly": reporter.send_weekly_report,
        "monthly": reporter.send_monthly_report,
    }
    sender = senders.get(report_type)
    if sender is None:
        raise HTTPException(status_code=404, detail=f"Unknown report type: {report_type}")
    delivered = await sender()
    return ReportResponse(report_type=report_type, delivered=delivered)
