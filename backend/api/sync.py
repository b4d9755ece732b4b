"""Sync API endpoints."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_or_404
from database import get_db
from integrations.exceptions import UnknownGatewayError
from integrations.gateway_registry import ALL_GATEWAY_IDS
from models import SyncRun
from schemas import SyncResultResponse, SyncRunResponse, SyncTriggerRequest, TransactionResponse
from services.exceptions import SyncAlreadyRunningError
from services.sync_run_tracker import SyncRunTracker
from services.sync_service import SyncOptions, SyncResult, SyncService
from services.transaction_ledger import TransactionLedger
from utils.actor import ActorContext
from utils.query_params import clamp_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


def get_sync_service() -> SyncService:
    """Get SyncService instance (dependency for injection in tests)."""
    return SyncService()


def sync_result_response(result: SyncResult) -> SyncResultResponse:
    return SyncResultResponse(**asdict(result), summary=result.summary())


@router.post("/{source}", response_model=SyncResultResponse)
def trigger_sync(
    source: str,
    body: Optional[SyncTriggerRequest] = None,
    db: Session = Depends(get_db),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Trigger a sync for one gateway source.

    Sources are ``paypal``, ``paypal_nvp``, ``stripe`` and ``stripe_customers``.

    Always returns 200 with the run outcome once a run has started; success
    or failure is communicated via ``status`` and ``error_message``.

    Raises:
        HTTPException:
            - 404 Not Found: Unknown source
            - 409 Conflict: A sync for the same gateway is already running
            - 500 Internal Server Error: Unexpected error
    """
    body = body or SyncTriggerRequest()
    options = SyncOptions(start=body.start, end=body.end, page_size=body.page_size)

    try:
        result = sync_service.run(
            db,
            source,
            sync_type=body.sync_type,
            options=options,
            actor=ActorContext(actor_id="api", label="manual"),
        )
    except UnknownGatewayError:
        raise HTTPException(status_code=404, detail=f"Unknown gateway: {source}")
    except SyncAlreadyRunningError as e:
        raise HTTPException(
            status_code=409,
            detail=f"A {e.gateway} sync is already in progress. Please wait for it to finish.",
        )
    except Exception:
        # Safety catch for truly unexpected errors - never expose str(e)
        logger.error("Unexpected error during %s sync", source, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred during sync.",
        )

    return sync_result_response(result)


@router.get("/runs", response_model=list[SyncRunResponse])
def list_sync_runs(
    gateway: Optional[str] = None,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    """List recent sync runs, newest first."""
    if gateway is not None and gateway not in ALL_GATEWAY_IDS:
        raise HTTPException(status_code=404, detail=f"Unknown gateway: {gateway}")
    return SyncRunTracker(db).list_runs(gateway=gateway, limit=clamp_limit(limit))


@router.get("/runs/{run_id}", response_model=SyncRunResponse)
def get_sync_run(run_id: str, db: Session = Depends(get_db)):
    """Get a single sync run."""
    return get_or_404(db, SyncRun, run_id, "Sync run not found")


@router.get("/runs/{run_id}/transactions", response_model=list[TransactionResponse])
def list_sync_run_transactions(run_id: str, db: Session = Depends(get_db)):
    """List the transactions a sync run recorded, oldest first."""
    get_or_404(db, SyncRun, run_id, "Sync run not found")
    return TransactionLedger(db).list_for_run(run_id)


@router.post("/runs/{run_id}/cancel", response_model=SyncRunResponse)
def cancel_sync_run(run_id: str, db: Session = Depends(get_db)):
    """Ask a running sync to stop after its current page.

    Raises:
        HTTPException: 404 if the run doesn't exist, 409 if it is not running.
    """
    run = get_or_404(db, SyncRun, run_id, "Sync run not found")
    if not SyncRunTracker(db).cancel(run.id):
        raise HTTPException(status_code=409, detail="Sync run is not running")
    db.refresh(run)
    return run
