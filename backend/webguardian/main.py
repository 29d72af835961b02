"""Main FastAPI application - wires the monitoring engine and exposes its API."""
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, settings
from .database import async_session, close_db, init_db
from .routers import reports_router, sites_router
from .services.checker import CheckerService
from .services.discord_channel import DiscordChannel
from .services.email_channel import EmailChannel, EmailConfig
from .services.monitoring import MonitoringService
from .services.notifier import NotificationChannel, NotificationDispatcher
from .services.reporter import ReportService
from .services.repository import SqlSiteRepository
from .services.scheduler import SchedulerService
from .services.webhook_channel import WebhookChannel

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_channels(config: Settings) -> List[NotificationChannel]:
    """Instantiate every notification channel that has its settings filled in."""
    channels: List[NotificationChannel] = []
    if config.webhook_url:
        channels.append(WebhookChannel(config.webhook_url))
    if config.discord_webhook_url:
        channels.append(DiscordChannel(config.discord_webhook_url))
    if config.smtp_host and config.email_to:
        channels.append(EmailChannel(EmailConfig(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            from_address=config.email_from,
            to_address=config.email_to,
        )))
    return channels


def schedule_reports(scheduler: SchedulerService, reporter: ReportService, config: Settings):
    hour = config.report_hour
    if config.daily_report_enabled:
        scheduler.add_report_job("daily_report", reporter.send_daily_report, hour=hour, minute=0)
    if config.weekly_report_enabled:
        scheduler.add_report_job(
            "weekly_report", reporter.send_weekly_report, day_of_week="mon", hour=hour, minute=0
        )
    if config.monthly_report_enabled:
        scheduler.add_report_job("monthly_report", reporter.send_monthly_report, day=1, hour=hour, minute=0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info(f"Starting WebGuardian {__version__}")

    await init_db()
    logger.info("Database initialized")

    repository = SqlSiteRepository(async_session)
    channels = build_channels(settings)
    if not channels:
        logger.warning("No notification channel configured, alerts will only be logged")
    dispatcher = NotificationDispatcher(channels)

    monitoring = MonitoringService(CheckerService(), repository, dispatcher)
    scheduler = SchedulerService(monitoring)
    reporter = ReportService(repository, dispatcher)

    app.state.monitoring = monitoring
    app.state.scheduler = scheduler
    app.state.reporter = reporter

    scheduler.schedule_all(await repository.find_all())
    schedule_reports(scheduler, reporter, settings)
    scheduler.start()

    yield

    # Shutdown
    await scheduler.shutdown()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="WebGuardian",
        description="Website availability monitoring and alerting",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sites_router)
    app.include_router(reports_router)

    @app.get("/health")
    async def health_check():
        scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "healthy",
            "scheduler_running": bool(scheduler and scheduler.running),
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
