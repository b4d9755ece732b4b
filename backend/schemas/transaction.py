"""Pydantic schemas for ledger transactions."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    """Response schema for a ledger transaction."""

    id: str
    transaction_id: str
    contact_id: str
    sync_run_id: Optional[str] = None
    type: str
    gateway: str
    gateway_transaction_id: Optional[str] = None
    amount: Decimal
    currency: str
    status: str
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
