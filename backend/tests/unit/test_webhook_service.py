"""Tests for WebhookService and Stripe signature verification."""

import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import patch

import pytest

from models import Transaction
from services.exceptions import WebhookVerificationError
from services.sync_service import SyncService
from services.webhook_service import WebhookService, verify_stripe_event

SECRET = "whsec_test"


def _sign(payload: bytes, timestamp: int | None = None, secret: str = SECRET) -> str:
    # The SDK checks the timestamp against the wall clock
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def _event(event_type: str, **charge) -> bytes:
    obj = {
        "id": "ch_1",
        "amount": 2599,
        "currency": "usd",
        "status": "succeeded",
        "created": 1718452800,
        "billing_details": {"email": "alice@example.com", "name": "Alice Smith"},
        **charge,
    }
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}}).encode()


@pytest.fixture
def service(clock):
    return WebhookService(sync_service=SyncService(clock=clock), clock=clock)


def _deliver(service, db, payload):
    return service.handle_stripe(db, payload, _sign(payload))


class TestSignature:
    def test_valid_signature_returns_event(self):
        payload = b'{"id": "evt_1", "type": "charge.succeeded"}'
        event = verify_stripe_event(payload, _sign(payload), SECRET)
        assert event == {"id": "evt_1", "type": "charge.succeeded"}

    def test_multiple_v1_signatures_accepted(self):
        payload = b'{"id": "evt_1"}'
        timestamp = int(time.time())
        good = _sign(payload, timestamp).split("v1=")[1]
        header = f"t={timestamp},v1=deadbeef,v1={good}"
        assert verify_stripe_event(payload, header, SECRET)["id"] == "evt_1"

    @pytest.mark.parametrize("header", ["", "v1=abc", "t=123", "t=soon,v1=abc"])
    def test_malformed_header(self, header):
        with pytest.raises(WebhookVerificationError, match="Invalid signature"):
            verify_stripe_event(b"{}", header, SECRET)

    def test_tampered_payload(self):
        header = _sign(b'{"amount": 1}')
        with pytest.raises(WebhookVerificationError, match="Invalid signature"):
            verify_stripe_event(b'{"amount": 2}', header, SECRET)

    def test_stale_timestamp(self):
        payload = b"{}"
        old = int(time.time()) - 3600
        with pytest.raises(WebhookVerificationError, match="Invalid signature"):
            verify_stripe_event(payload, _sign(payload, old), SECRET)

    def test_missing_secret(self):
        with pytest.raises(WebhookVerificationError, match="not configured"):
            verify_stripe_event(b"{}", "t=1,v1=a", "")

    @pytest.mark.parametrize("payload", [b"[]", b'"charge.succeeded"', b"42", b"null"])
    def test_signed_payload_that_is_not_an_object(self, payload):
        with pytest.raises(WebhookVerificationError, match="not a JSON object"):
            verify_stripe_event(payload, _sign(payload), SECRET)

    def test_invalid_json(self):
        with pytest.raises(WebhookVerificationError, match="not valid JSON"):
            verify_stripe_event(b"not json", _sign(b"not json"), SECRET)

    def test_uses_stripe_sdk_verification(self):
        payload = b'{"id": "evt_1"}'
        with patch("services.webhook_service.stripe.Webhook.construct_event") as construct:
            verify_stripe_event(payload, "t=1,v1=abc", SECRET)
        construct.assert_called_once_with(payload, "t=1,v1=abc", SECRET, tolerance=300)

class TestChargeSucceeded:
    def test_records_charge(self, db, service, clock, stripe_settings):
        result = _deliver(service, db, _event("charge.succeeded"))

        assert result.event_type == "charge.succeeded"
        assert result.action == "recorded"
        txn = db.query(Transaction).one()
        assert result.transaction_id == txn.transaction_id
        assert (txn.gateway, txn.gateway_transaction_id, txn.amount, txn.currency) == ("stripe", "ch_1", Decimal("25.99"), "USD")
        assert txn.created_by == "webhook"
        assert txn.sync_run_id is None

    def test_redelivery_is_skipped(self, db, service, clock, stripe_settings):
        _deliver(service, db, _event("charge.succeeded"))
        result = _deliver(service, db, _event("charge.succeeded"))
        assert result.action == "skipped"
        assert result.reason == "duplicate"
        assert db.query(Transaction).count() == 1

    def test_failed_charge_not_recorded(self, db, service, clock, stripe_settings):
        result = _deliver(service, db, _event("charge.succeeded", status="failed"))
        assert result.action == "skipped"
        assert db.query(Transaction).count() == 0

    def test_disabled_stripe_ignored(self, db, service, clock, stripe_settings):
        stripe_settings.settings = {**stripe_settings.settings, "enabled": False}
        db.commit()
        result = _deliver(service, db, _event("charge.succeeded"))
        assert result.action == "ignored"
        assert db.query(Transaction).count() == 0


class TestChargeRefunded:
    def test_full_refund(self, db, service, clock, stripe_settings):
        _deliver(service, db, _event("charge.succeeded"))
        result = _deliver(service, db, _event("charge.refunded", amount_refunded=2599, refunded=True))

        assert result.action == "recorded"
        original = db.query(Transaction).filter_by(gateway_transaction_id="ch_1").one()
        refund = db.query(Transaction).filter_by(gateway_transaction_id="ch_1_refund").one()
        assert original.status == "refunded"
        assert refund.type == "refund"
        assert refund.amount == Decimal("25.99")
        assert refund.contact_id == original.contact_id
        assert refund.description == f"Refund for {original.transaction_id}"

    def test_partial_refund_keeps_original_status(self, db, service, clock, stripe_settings):
        _deliver(service, db, _event("charge.succeeded"))
        _deliver(service, db, _event("charge.refunded", amount_refunded=1000, refunded=False))

        original = db.query(Transaction).filter_by(gateway_transaction_id="ch_1").one()
        refund = db.query(Transaction).filter_by(gateway_transaction_id="ch_1_refund").one()
        assert original.status == "completed"
        assert refund.amount == Decimal("10.00")

    def test_refund_for_unknown_charge_ignored(self, db, service, clock, stripe_settings):
        result = _deliver(service, db, _event("charge.refunded", amount_refunded=2599))
        assert result.action == "ignored"
        assert db.query(Transaction).count() == 0


class TestOtherEvents:
    def test_unhandled_event_ignored(self, db, service, clock, stripe_settings):
        result = _deliver(service, db, _event("customer.created"))
        assert result.action == "ignored"
        assert result.event_type == "customer.created"

    def test_bad_signature_rejected(self, db, service, clock, stripe_settings):
        payload = _event("charge.succeeded")
        header = _sign(payload, secret="whsec_other")
        with pytest.raises(WebhookVerificationError):
            service.handle_stripe(db, payload, header)
        assert db.query(Transaction).count() == 0

    def test_invalid_json_rejected(self, db, service, clock, stripe_settings):
        with pytest.raises(WebhookVerificationError, match="JSON"):
            _deliver(service, db, b"not json")

    def test_list_payload_rejected(self, db, service, stripe_settings):
        with pytest.raises(WebhookVerificationError, match="not a JSON object"):
            _deliver(service, db, b'[{"type": "charge.succeeded"}]')
        assert db.query(Transaction).count() == 0

    def test_event_without_object_data_ignored(self, db, service, stripe_settings):
        payload = json.dumps({"id": "evt_1", "type": "charge.refunded", "data": ["ch_1"]}).encode()
        result = _deliver(service, db, payload)
        assert result.action == "ignored"
