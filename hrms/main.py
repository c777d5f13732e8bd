"""HRMS API — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrms import __version__
from hrms.attendance.router import router as attendance_router
from hrms.auth.router import login_router
from hrms.auth.router import router as auth_router
from hrms.common.exceptions import register_exception_handlers
from hrms.common.rate_limit import limiter
from hrms.config import settings
from hrms.core_hr.router import departments_router, employees_router, users_router
from hrms.dashboard.router import router as dashboard_router
from hrms.database import engine
from hrms.leave.router import requests_router as leave_requests_router
from hrms.leave.router import types_router as leave_types_router
from hrms.logging_config import configure_logging
from hrms.notifications.router import router as notifications_router
from hrms.schedules.router import schedules_router, shifts_router
from hrms.tasks.router import router as tasks_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("HRMS API starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("HRMS API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="HRMS API",
        description="Employees, attendance, leave, scheduling, tasks and role dashboards",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(login_router, prefix="/api/users", tags=["auth"])
    app.include_router(users_router, prefix="/api/users", tags=["employees"])
    app.include_router(employees_router, prefix="/api/employees", tags=["employees"])
    app.include_router(departments_router, prefix="/api/departments", tags=["departments"])
    app.include_router(attendance_router, prefix="/api/attendance", tags=["attendance"])
    app.include_router(leave_types_router, prefix="/api/leave-types", tags=["leave"])
    app.include_router(leave_requests_router, prefix="/api/leave-requests", tags=["leave"])
    app.include_router(shifts_router, prefix="/api/shifts", tags=["schedules"])
    app.include_router(schedules_router, prefix="/api/schedules", tags=["schedules"])
    app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(dashboard_router, prefix="/api/dashboard", tags=["dashboard"])
    app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])

    return app


app = create_app()
