from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backoffice.api.routes_customers import router as customers_router
from backoffice.api.routes_orders import router as orders_router
from backoffice.api.routes_pricing import router as pricing_router
from backoffice.api.routes_stores import router as stores_router
from backoffice.core.config import get_settings
from backoffice.core.logging import configure_logging
from backoffice.domain.errors import BackofficeError
from backoffice.persistence.pg import init_db

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("back office ready: env=%s auth_enabled=%s", settings.env, settings.auth_enabled)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(_: Request, exc: BackofficeError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": str(exc),
            "error": exc.code,
        },
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(orders_router)
app.include_router(pricing_router)
app.include_router(stores_router)
app.include_router(customers_router)
