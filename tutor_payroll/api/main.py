"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from tutor_payroll.api.middleware import RequestIDMiddleware, MetricsMiddleware
from tutor_payroll.api.v1 import cache, compensation, reassignments
from tutor_payroll.infrastructure.observability.logging import setup_logging
from tutor_payroll.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Tutor Payroll",
        description="Instructor compensation engine",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(compensation.router, prefix="/v1", tags=["compensation"])
    app.include_router(reassignments.router, prefix="/v1", tags=["reassignments"])
    app.include_router(cache.router, prefix="/v1", tags=["cache"])

    return app


app = create_app()
