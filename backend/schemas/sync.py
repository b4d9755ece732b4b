"""Pydantic schemas for sync runs."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from integrations.parsing_utils import parse_iso_datetime


class SyncTriggerRequest(BaseModel):
    """Optional body for a manual sync trigger."""

    sync_type: Literal["manual", "historical"] = "manual"
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    page_size: Optional[int] = Field(default=None, ge=1, le=100)

    @field_validator("start", "end", mode="after")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive times are UTC
        return parse_iso_datetime(v) if v is not None else None

    @model_validator(mode="after")
    def check_window(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class SyncRunResponse(BaseModel):
    """Response schema for a stored sync run."""

    id: str
    gateway: str
    source: str
    sync_type: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    transactions_synced: int
    transactions_skipped: int
    transactions_total: int
    contacts_created: int
    error_message: Optional[str] = None
    triggered_by: Optional[str] = None

    model_config = {"from_attributes": True}


class SyncResultResponse(BaseModel):
    """Response schema for a finished trigger (manual or scheduled)."""

    run_id: str
    gateway: str
    source: str
    status: str
    synced: int
    skipped: int
    contacts_added: int
    total: int
    error_message: Optional[str] = None
    summary: str

    model_config = {"from_attributes": True}
