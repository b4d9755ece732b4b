"""Pydantic request/response schemas."""

from schemas.gateway import GatewayStatusResponse, GatewayUpdateRequest, SourceStatus
from schemas.sync import SyncResultResponse, SyncRunResponse, SyncTriggerRequest
from schemas.transaction import TransactionResponse
from schemas.webhook import WebhookResponse

__all__ = [
    "GatewayStatusResponse",
    "GatewayUpdateRequest",
    "SourceStatus",
    "SyncResultResponse",
    "SyncRunResponse",
    "SyncTriggerRequest",
    "TransactionResponse",
    "WebhookResponse",
]
