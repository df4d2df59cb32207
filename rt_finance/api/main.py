"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from rt_finance.api.errors import domain_exception_handler
from rt_finance.api.middleware import RequestIDMiddleware, MetricsMiddleware
from rt_finance.api.v1 import monthly_fee, rw_submission, cash_ledger, deferred, cron, extract, residents, telegram
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.observability.logging import setup_logging
from rt_finance.config import settings

setup_logging(settings.log_level)

ROUTERS = [
    (monthly_fee.router, "monthly-fee"),
    (rw_submission.router, "rw-submission"),
    (cash_ledger.router, "cash-ledger"),
    (deferred.router, "deferred-subscription"),
    (cron.router, "cron"),
    (extract.router, "ocr"),
    (residents.router, "residents"),
    (telegram.router, "telegram"),
]


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="RT Finance Gateway",
        description="Monthly fee reconciliation, cash ledger and prepaid subscriptions for a neighborhood association",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added runs first, so every request has an ID before it is timed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(DomainException, domain_exception_handler)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    for router, tag in ROUTERS:
        app.include_router(router, prefix="/v1", tags=[tag])

    return app


app = create_app()
