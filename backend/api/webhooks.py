"""Gateway webhook endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_db
from schemas import WebhookResponse
from services.exceptions import WebhookVerificationError
from services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def get_webhook_service() -> WebhookService:
    """Get the WebhookService (dependency for injection in tests)."""
    return WebhookService()


@router.post("/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    service: WebhookService = Depends(get_webhook_service),
):
    """Receive a Stripe event.

    Raises:
        HTTPException: 400 if the signature or payload is invalid.
    """
    payload = await request.body()
    try:
        result = await run_in_threadpool(service.handle_stripe, db, payload, stripe_signature or "")
    except WebhookVerificationError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return WebhookResponse(
        event_type=result.event_type,
        action=result.action,
        reason=result.reason,
        transaction_id=result.transaction_id,
    )
