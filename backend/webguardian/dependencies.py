"""FastAPI dependencies exposing the services built at startup."""
from fastapi import Request

from .services.monitoring import MonitoringService
from .services.reporter import ReportService
from .services.scheduler import SchedulerService


def get_monitoring_service(request: Request) -> MonitoringService:
    return request.app.state.monitoring


def get_scheduler_service(request: Request) -> SchedulerService:
    return request.app.state.scheduler


def get_report_service(request: Request) -> ReportService:
    return request.app.state.reporter
