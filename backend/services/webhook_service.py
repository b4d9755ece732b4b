"""Webhook service - ingests Stripe charge events into the ledger.

Events go through the same dedup and contact rules as a sync run, so a
charge delivered by webhook and later seen by a sync is recorded once.
Signatures are checked with ``stripe.Webhook.construct_event``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import stripe
from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import GatewayConfigurationError
from integrations.gateway_protocol import GatewayTransaction
from integrations.gateway_registry import GatewayRegistry, get_gateway_registry
from integrations.parsing_utils import minor_units_to_amount
from services.exceptions import WebhookVerificationError
from services.sync_service import RecordOutcome, SyncService
from services.transaction_ledger import TransactionLedger
from utils.actor import WEBHOOK_ACTOR
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    """What a webhook delivery did."""

    event_type: str
    action: str  # "recorded" | "skipped" | "ignored"
    reason: str = ""
    transaction_id: Optional[str] = None


def verify_stripe_event(payload: bytes, header: str, secret: str) -> dict[str, Any]:
    """Verify a ``Stripe-Signature`` header and return the event as a dict.

    Raises:
        WebhookVerificationError: Missing secret, payload that is not a JSON
            object, stale timestamp or no matching signature.
    """
    if not secret:
        raise WebhookVerificationError("Stripe webhook secret is not configured")

    # construct_event parses before verifying and expects an object
    try:
        event = json.loads(payload)
    except ValueError as e:
        raise WebhookVerificationError("Payload is not valid JSON") from e
    if not isinstance(event, dict):
        raise WebhookVerificationError("Payload is not a JSON object")

    try:
        stripe.Webhook.construct_event(
            payload, header, secret, tolerance=settings.WEBHOOK_TOLERANCE_SECONDS
        )
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(f"Invalid signature: {e.user_message or e}") from e
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid signature: {e}") from e
    return event

class WebhookService:
    """Handles verified Stripe webhook deliveries."""

    def __init__(
        self,
        sync_service: Optional[SyncService] = None,
        clock: Optional[Clock] = None,
        registry: Optional[GatewayRegistry] = None,
    ):
        self._clock = clock or SystemClock()
        self._sync_service = sync_service or SyncService(clock=self._clock, actor=WEBHOOK_ACTOR)
        self._registry = registry

    def _get_registry(self, db: Session) -> GatewayRegistry:
        if self._registry is not None:
            return self._registry
        return get_gateway_registry(db, clock=self._clock)

    def handle_stripe(self, db: Session, payload: bytes, signature_header: str) -> WebhookResult:
        """Verify and apply one Stripe event. Commits.

        Raises:
            WebhookVerificationError: Bad signature or unparseable payload.
        """
        registry = self._get_registry(db)
        credential = registry.credential_store.get_credentials("stripe")
        event = verify_stripe_event(payload, signature_header, credential.get("webhook_secret"))

        event_type = str(event.get("type") or "")
        data = event.get("data")
        charge = data.get("object") if isinstance(data, dict) else None
        if not isinstance(charge, dict):
            charge = {}
        logger.info("Stripe webhook received: %s (%s)", event_type, event.get("id", "?"))

        if event_type == "charge.succeeded":
            result = self._charge_succeeded(db, registry, charge)
        elif event_type == "charge.refunded":
            result = self._charge_refunded(db, charge)
        else:
            return WebhookResult(event_type=event_type, action="ignored", reason="unhandled event type")

        result.event_type = event_type
        db.commit()
        return result

    def _charge_succeeded(
        self, db: Session, registry: GatewayRegistry, charge: dict[str, Any]
    ) -> WebhookResult:
        try:
            client = registry.build_client("stripe")
        except GatewayConfigurationError as e:
            logger.warning("Stripe webhook ignored: %s", e)
            return WebhookResult(event_type="", action="ignored", reason=str(e))

        try:
            outcome = self._sync_service.process_record(db, client, charge, actor=WEBHOOK_ACTOR)
        finally:
            client.close()
        return self._to_webhook_result(outcome)

    def _charge_refunded(self, db: Session, charge: dict[str, Any]) -> WebhookResult:
        charge_id = charge.get("id") or ""
        ledger = TransactionLedger(db, self._clock, WEBHOOK_ACTOR)
        original = ledger.find("stripe", charge_id) if charge_id else None
        if original is None:
            return WebhookResult(event_type="", action="ignored", reason="original charge not recorded")

        currency = (charge.get("currency") or original.currency).upper()
        amount = minor_units_to_amount(charge.get("amount_refunded"), currency)
        if amount is None or amount <= 0:
            return WebhookResult(event_type="", action="ignored", reason="no refunded amount")

        refund = GatewayTransaction(
            gateway="stripe",
            gateway_transaction_id=f"{charge_id}_refund",
            payer_email=original.contact.email,
            payer_name=original.contact.display_name,
            amount=amount,
            currency=currency,
            description=f"Refund for {original.transaction_id}",
            metadata={"stripe_charge": charge_id, "refund_of": original.transaction_id},
        )
        outcome = self._sync_service.record_transaction(
            db, refund, actor=WEBHOOK_ACTOR, txn_type="refund", status="completed"
        )

        if charge.get("refunded") and original.status != "refunded":
            ledger.update_status(original, "refunded")
            logger.info("Transaction %s marked refunded", original.transaction_id)
        return self._to_webhook_result(outcome)

    @staticmethod
    def _to_webhook_result(outcome) -> WebhookResult:
        if outcome.outcome is RecordOutcome.SYNCED:
            return WebhookResult(event_type="", action="recorded", transaction_id=outcome.transaction_id)
        return WebhookResult(event_type="", action="skipped", reason=outcome.reason)
