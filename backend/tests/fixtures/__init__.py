"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from models import Contact, GatewaySetting, SyncRun, Transaction


def create_contact(db: Session, email: str, first_name: str = "", last_name: str = "", source: str = "") -> Contact:
    """Create and flush a contact (helper, not a fixture)."""
    contact = Contact(email=email, first_name=first_name, last_name=last_name, source=source)
    db.add(contact)
    db.flush()
    return contact


def create_transaction(
    db: Session,
    contact: Contact,
    gateway: str,
    gateway_transaction_id: str | None,
    amount: Decimal = Decimal("10.00"),
    transaction_id: str = "TXN-2024-900",
    status: str = "completed",
) -> Transaction:
    """Create and flush a ledger row directly, bypassing the ledger service."""
    txn = Transaction(
        transaction_id=transaction_id,
        contact_id=contact.id,
        type="payment",
        gateway=gateway,
        gateway_transaction_id=gateway_transaction_id,
        amount=amount,
        currency="USD",
        status=status,
    )
    db.add(txn)
    db.flush()
    return txn


@pytest.fixture
def contact(db):
    """An existing contact with a hand-entered name."""
    c = create_contact(db, "jane@example.com", first_name="Jane", last_name="Doe", source="manual")
    db.commit()
    return c


@pytest.fixture
def running_paypal_run(db):
    """A PayPal run left in the running state."""
    run = SyncRun(
        gateway="paypal",
        source="paypal",
        sync_type="manual",
        status="running",
        started_at=datetime(2024, 6, 15, 11, 0, tzinfo=timezone.utc),
    )
    db.add(run)
    db.commit()
    return run


@pytest.fixture
def paypal_settings(db):
    """Enabled PayPal gateway with REST and NVP credentials stored."""
    setting = GatewaySetting(
        gateway_id="paypal",
        settings={
            "enabled": True,
            "mode": "sandbox",
            "auto_sync": True,
            "client_id": "client-id",
            "client_secret": "client-secret",
            "api_username": "api-user",
            "api_password": "api-pass",
            "api_signature": "api-sig",
        },
    )
    db.add(setting)
    db.commit()
    return setting


@pytest.fixture
def stripe_settings(db):
    """Enabled Stripe gateway in test mode with a webhook secret."""
    setting = GatewaySetting(
        gateway_id="stripe",
        settings={
            "enabled": True,
            "mode": "test",
            "test_secret": "sk_test_123",
            "webhook_secret": "whsec_test",
        },
    )
    db.add(setting)
    db.commit()
    return setting
