"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import gateways, sync, transactions, webhooks
from config import settings
from database import get_session_local
from logging_config import setup_logging
from services.sync_run_tracker import SyncRunTracker

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Purge expired sync run history on startup."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        purged = SyncRunTracker(db).purge_older_than(settings.SYNC_RUN_RETENTION_DAYS)
        if purged:
            logger.info("Startup cleanup: %d old sync runs removed", purged)
    except Exception:
        logger.warning("Sync run cleanup failed on startup", exc_info=True)
    finally:
        db.close()
    yield


app = FastAPI(
    title="SyncPoint CRM",
    description="Payment gateway transaction sync for a small-business CRM",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for the CRM frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(gateways.router)
app.include_router(sync.router)
app.include_router(transactions.router)
app.include_router(webhooks.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
