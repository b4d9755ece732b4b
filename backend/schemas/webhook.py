"""Pydantic schemas for webhook deliveries."""

from typing import Optional

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the gateway."""

    received: bool = True
    event_type: str
    action: str
    reason: str = ""
    transaction_id: Optional[str] = None

    model_config = {"from_attributes": True}
