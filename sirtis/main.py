"""SIRTIS — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.admin.router import router as admin_router
from sirtis.auth.router import router as auth_router
from sirtis.call_centre.router import router as call_centre_router
from sirtis.common.exceptions import register_exception_handlers
from sirtis.common.logging_config import setup_logging
from sirtis.common.middleware import RequestLoggingMiddleware
from sirtis.common.rate_limit import limiter
from sirtis.config import settings
from sirtis.database import engine, get_db, ping_database
from sirtis.documents.router import router as documents_router
from sirtis.hr.router import (
    departments_router,
    employees_router,
    job_descriptions_router,
    self_service_router,
)
from sirtis.meal.router import router as meal_router
from sirtis.payroll.router import router as payroll_router
from sirtis.performance.router import router as performance_router
from sirtis.programs.router import router as programs_router
from sirtis.risks.router import router as risks_router

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("SIRTIS %s starting (%s)", APP_VERSION, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("SIRTIS stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="SIRTIS",
        description="Integrated HR, call centre, MEAL, risk and programme management",
        version=APP_VERSION,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi): default limit on every route, tighter per-route limits where decorated
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Outermost: request id + access log
    app.add_middleware(RequestLoggingMiddleware)

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        try:
            database_ok = await ping_database(db)
        except SQLAlchemyError:
            logger.exception("Health check: database unreachable")
            database_ok = False
        body = {
            "status": "healthy" if database_ok else "degraded",
            "version": APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": "connected" if database_ok else "unreachable",
        }
        return JSONResponse(body, status_code=200 if database_ok else 503)

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(job_descriptions_router, prefix="/api/v1/job-descriptions", tags=["job-descriptions"])
    app.include_router(self_service_router, prefix="/api/v1/employee", tags=["self-service"])
    app.include_router(call_centre_router, prefix="/api/v1/call-centre", tags=["call-centre"])
    app.include_router(performance_router, prefix="/api/v1/performance", tags=["performance"])
    app.include_router(meal_router, prefix="/api/v1/meal", tags=["meal"])
    app.include_router(documents_router, prefix="/api/v1/documents", tags=["documents"])
    app.include_router(risks_router, prefix="/api/v1/risks", tags=["risks"])
    app.include_router(programs_router, prefix="/api/v1/programs", tags=["programs"])
    app.include_router(payroll_router, prefix="/api/v1/payroll", tags=["payroll"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])

    return app


app = create_app()
