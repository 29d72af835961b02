"""API routers."""
from .sites import router as sites_router
from .reports import router as reports_router

__all__ = ["sites_router", "reports_router"]
