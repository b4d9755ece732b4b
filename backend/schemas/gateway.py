"""Pydantic schemas for gateway settings."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class SourceStatus(BaseModel):
    """Availability of one sync source (e.g. ``paypal_nvp``)."""

    name: str
    available: bool
    missing: list[str] = []


class GatewayStatusResponse(BaseModel):
    """Response schema for a single gateway's status."""

    gateway_id: str
    enabled: bool
    mode: str
    auto_sync: bool
    available: bool
    sources: list[SourceStatus]
    is_running: bool
    last_sync_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GatewayUpdateRequest(BaseModel):
    """Request body for editing gateway settings.

    Only fields present in the request are changed; ``null`` clears a value.
    """

    enabled: Optional[bool] = None
    mode: Optional[Literal["test", "sandbox", "live"]] = None
    auto_sync: Optional[bool] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    api_username: Optional[str] = None
    api_password: Optional[str] = None
    api_signature: Optional[str] = None
    first_txn_date: Optional[str] = None
    test_secret: Optional[str] = None
    live_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
