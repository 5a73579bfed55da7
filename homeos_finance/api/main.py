"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from homeos_finance.api.middleware import RequestIDMiddleware, MetricsMiddleware
from homeos_finance.api.v1 import debts, forecast, recurring
from homeos_finance.infrastructure.observability.logging import setup_logging
from homeos_finance.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="HomeOS Finance Engine",
        description="Amortization schedules, recurring transaction generation and cash-flow forecasts",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(forecast.router, prefix="/v1", tags=["cash-flow"])
    app.include_router(debts.router, prefix="/v1", tags=["debts"])
    app.include_router(recurring.router, prefix="/v1", tags=["recurring-transactions"])

    return app


app = create_app()
