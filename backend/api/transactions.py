"""Transaction ledger API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import get_or_404
from database import get_db
from models import Transaction
from schemas import TransactionResponse
from services.transaction_ledger import TransactionLedger
from utils.query_params import clamp_limit, parse_uuid_param

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionResponse])
def list_transactions(
    gateway: Optional[str] = None,
    contact_id: Optional[str] = None,
    sync_run_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    """List ledger transactions, newest first, optionally filtered."""
    return TransactionLedger(db).list_transactions(
        gateway=gateway,
        contact_id=parse_uuid_param(contact_id, "contact_id"),
        sync_run_id=parse_uuid_param(sync_run_id, "sync_run_id"),
        limit=clamp_limit(limit),
        offset=max(0, offset),
    )


@router.get("/{transaction_pk}", response_model=TransactionResponse)
def get_transaction(transaction_pk: str, db: Session = Depends(get_db)):
    return get_or_404(db, Transaction, transaction_pk, "Transaction not found")
