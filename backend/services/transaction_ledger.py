"""Transaction ledger - dedup-aware storage of gateway transactions."""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import Contact, IdSequence, Transaction
from services.exceptions import (
    DuplicateTransactionError,
    PersistenceError,
    TransactionValidationError,
)
from utils.actor import SYSTEM_ACTOR, ActorContext
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = frozenset({"payment", "refund", "subscription", "payout"})
TRANSACTION_STATUSES = frozenset({"pending", "completed", "failed", "refunded"})

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass
class NewTransaction:
    """Fields for a ledger insert; the ledger fills ids and timestamps."""

    contact_id: str
    gateway: str
    gateway_transaction_id: str | None
    amount: Decimal
    currency: str = "USD"
    type: str = "payment"
    status: str = "completed"
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    sync_run_id: str | None = None
    occurred_at: datetime | None = None  # Gateway time; defaults to now


class TransactionLedger:
    """Reads and writes :class:`~models.Transaction` rows.

    ``(gateway, gateway_transaction_id)`` is unique. Callers check
    :meth:`exists` first; the constraint catches whatever slips past.
    """

    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ):
        self._db = db
        self._clock = clock or SystemClock()
        self._actor = actor

    def exists(self, gateway: str, gateway_transaction_id: str | None) -> bool:
        if not gateway_transaction_id:
            return False
        return (
            self._db.query(Transaction.id)
            .filter_by(gateway=gateway, gateway_transaction_id=gateway_transaction_id)
            .first()
        ) is not None

    def find(self, gateway: str, gateway_transaction_id: str) -> Transaction | None:
        return (
            self._db.query(Transaction)
            .filter_by(gateway=gateway, gateway_transaction_id=gateway_transaction_id)
            .first()
        )

    def list_for_run(self, run_id: str) -> list[Transaction]:
        return (
            self._db.query(Transaction)
            .filter(Transaction.sync_run_id == run_id)
            .order_by(Transaction.created_at)
            .all()
        )

    def list_transactions(
        self,
        gateway: str | None = None,
        contact_id: str | None = None,
        sync_run_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        query = self._db.query(Transaction)
        if gateway:
            query = query.filter(Transaction.gateway == gateway)
        if contact_id:
            query = query.filter(Transaction.contact_id == contact_id)
        if sync_run_id:
            query = query.filter(Transaction.sync_run_id == sync_run_id)
        return (
            query.order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def _validate(self, new: NewTransaction) -> None:
        if new.type not in TRANSACTION_TYPES:
            raise TransactionValidationError(f"Unknown transaction type: {new.type}")
        if new.status not in TRANSACTION_STATUSES:
            raise TransactionValidationError(f"Unknown transaction status: {new.status}")
        if not isinstance(new.amount, Decimal) or not new.amount.is_finite():
            raise TransactionValidationError(f"Invalid amount: {new.amount!r}")
        if new.amount <= 0:
            raise TransactionValidationError(f"Amount must be positive, got {new.amount}")
        if not _CURRENCY_RE.match(new.currency or ""):
            raise TransactionValidationError(f"Invalid currency code: {new.currency!r}")
        if not new.contact_id or self._db.get(Contact, new.contact_id) is None:
            raise TransactionValidationError(f"Unknown contact: {new.contact_id}")

    def _advance_sequence(self, name: str) -> int | None:
        """Bump the named counter in one statement and return the value taken."""
        stmt = (
            update(IdSequence)
            .where(IdSequence.name == name)
            .values(next_value=IdSequence.next_value + 1)
            .returning(IdSequence.next_value)
            .execution_options(synchronize_session=False)
        )
        value = self._db.execute(stmt).scalar_one_or_none()
        return None if value is None else value - 1

    def _next_transaction_number(self, year: int) -> str:
        """Allocate the next ``TXN-{year}-{n:03d}`` identifier.

        The counter is read and advanced by a single UPDATE ... RETURNING,
        so concurrent sessions never hand out the same number.
        """
        name = f"transaction-{year}"
        number = self._advance_sequence(name)
        if number is None:
            try:
                with self._db.begin_nested():
                    self._db.add(IdSequence(name=name, next_value=2))
                    self._db.flush()
                number = 1
            except IntegrityError:
                # Created by another session in the meantime
                number = self._advance_sequence(name)
        if number is None:
            raise PersistenceError(f"Could not allocate a transaction number for {year}")
        return f"TXN-{year}-{number:03d}"

    def _transaction_id_taken(self, transaction_id: str) -> bool:
        return (
            self._db.query(Transaction.id).filter_by(transaction_id=transaction_id).first()
        ) is not None

    def insert(self, new: NewTransaction) -> Transaction:
        """Insert a transaction and return it.

        Runs in a savepoint, so a failure leaves the session usable. A
        collision on the generated ``transaction_id`` is retried once with
        a freshly allocated number.

        Raises:
            TransactionValidationError: Bad amount, currency, type or contact.
            DuplicateTransactionError: The gateway id is already recorded.
            PersistenceError: Any other storage failure.
        """
        new.currency = (new.currency or "").strip().upper()
        self._validate(new)
        gateway_transaction_id = (new.gateway_transaction_id or "").strip() or None
        now = self._clock.now()

        for attempt in range(2):
            transaction_id = self._next_transaction_number(now.year)
            try:
                with self._db.begin_nested():
                    transaction = Transaction(
                        transaction_id=transaction_id,
                        contact_id=new.contact_id,
                        sync_run_id=new.sync_run_id,
                        type=new.type,
                        gateway=new.gateway,
                        gateway_transaction_id=gateway_transaction_id,
                        amount=new.amount,
                        currency=new.currency,
                        status=new.status,
                        description=new.description or None,
                        metadata_json=json.dumps(new.metadata) if new.metadata else None,
                        created_by=self._actor.actor_id,
                        created_at=new.occurred_at or now,
                        updated_at=now,
                    )
                    self._db.add(transaction)
                    self._db.flush()
                break
            except IntegrityError as e:
                if gateway_transaction_id and self.exists(new.gateway, gateway_transaction_id):
                    raise DuplicateTransactionError(new.gateway, gateway_transaction_id) from e
                if attempt == 0 and self._transaction_id_taken(transaction_id):
                    logger.warning("Ledger: %s already taken, allocating another number", transaction_id)
                    continue
                raise PersistenceError(f"Could not store transaction: {e.orig}") from e
            except SQLAlchemyError as e:
                raise PersistenceError(f"Could not store transaction: {e}") from e

        logger.debug(
            "Ledger: %s recorded for %s:%s",
            transaction.transaction_id, new.gateway, gateway_transaction_id,
        )
        return transaction

    def update_status(self, transaction: Transaction, status: str) -> Transaction:
        """Change a transaction's status (the only post-creation mutation)."""
        if status not in TRANSACTION_STATUSES:
            raise TransactionValidationError(f"Unknown transaction status: {status}")
        transaction.status = status
        transaction.updated_at = self._clock.now()
        self._db.flush()
        return transaction
