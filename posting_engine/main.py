"""
Ledger Posting Engine: FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI

from posting_engine.config import get_settings
from posting_engine.api.chart import router as chart_router
from posting_engine.api.health import router as health_router
from posting_engine.api.registers import router as registers_router
from posting_engine.api.transactions import router as transactions_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry transaction posting for small-business ledgers",
)

# Register routers
app.include_router(health_router)
app.include_router(chart_router)
app.include_router(transactions_router)
app.include_router(registers_router)
