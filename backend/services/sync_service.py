"""Sync service - imports gateway transactions into the CRM ledger."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from integrations.exceptions import GatewayDataError, GatewayError, MissingIdentityError
from integrations.gateway_protocol import GatewayClient, GatewayContact, GatewayTransaction, SyncWindow
from integrations.gateway_registry import GatewayRegistry, gateway_for_source, get_gateway_registry
from integrations.parsing_utils import parse_iso_datetime
from models.sync_run import RUN_STATUS_COMPLETED
from services.contact_resolver import ContactResolver
from services.exceptions import (
    CRMValidationError,
    DuplicateTransactionError,
    PersistenceError,
)
from services.sync_run_tracker import SyncCounts, SyncRunTracker
from services.transaction_ledger import NewTransaction, TransactionLedger
from utils.actor import SYSTEM_ACTOR, ActorContext
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SYNC_TYPES = ("manual", "historical", "cron")


@dataclass
class SyncOptions:
    """Caller overrides for the fetch window; unset fields use client defaults."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    page_size: Optional[int] = None


@dataclass
class SyncResult:
    """Outcome of one sync run, as returned to triggers."""

    run_id: str
    gateway: str
    source: str
    status: str
    synced: int = 0
    skipped: int = 0
    contacts_added: int = 0
    total: int = 0
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RUN_STATUS_COMPLETED

    def summary(self) -> str:
        text = (
            f"{self.source} sync {self.status}: {self.synced} synced, "
            f"{self.skipped} skipped, {self.contacts_added} new contacts "
            f"({self.total} records)"
        )
        if self.error_message:
            text += f" - {self.error_message}"
        return text


class RecordOutcome(str, Enum):
    SYNCED = "synced"
    SKIPPED = "skipped"


@dataclass
class RecordResult:
    """What happened to a single gateway record."""

    outcome: RecordOutcome
    reason: str = ""
    contact_created: bool = False
    transaction_id: Optional[str] = None


def _skip(reason: str) -> RecordResult:
    return RecordResult(outcome=RecordOutcome.SKIPPED, reason=reason)


class SyncService:
    """Runs gateway syncs.

    A run fetches pages strictly in order and processes each record through
    dedup check, contact resolution and ledger insert. Record-level
    problems skip the record; gateway errors fail the whole run.
    """

    def __init__(
        self,
        registry_factory: Optional[Callable[[Session], GatewayRegistry]] = None,
        clock: Optional[Clock] = None,
        actor: ActorContext = SYSTEM_ACTOR,
    ):
        """Initialize with optional collaborators for dependency injection.

        Args:
            registry_factory: Builds a GatewayRegistry for a session. If
                None, registries read gateway settings from the database.
            clock: Time source for runs and ledger timestamps.
            actor: Default identity stamped on created rows.
        """
        self._clock = clock or SystemClock()
        self._registry_factory = registry_factory
        self._actor = actor

    def registry(self, db: Session) -> GatewayRegistry:
        if self._registry_factory is not None:
            return self._registry_factory(db)
        return get_gateway_registry(db, clock=self._clock)

    @staticmethod
    def _resolve_window(
        client: GatewayClient, now: datetime, options: Optional[SyncOptions]
    ) -> SyncWindow:
        window = client.default_window(now)
        if options is None:
            return window
        if options.start is not None:
            window.start = parse_iso_datetime(options.start)
        if options.end is not None:
            window.end = parse_iso_datetime(options.end)
        if options.page_size is not None:
            window.page_size = max(1, min(options.page_size, 100))
        if window.start > window.end:
            raise GatewayDataError(
                "Sync window start is after its end", gateway=client.gateway_id
            )
        return window

    def run(
        self,
        db: Session,
        source: str,
        sync_type: str = "manual",
        options: Optional[SyncOptions] = None,
        actor: Optional[ActorContext] = None,
    ) -> SyncResult:
        """Run one sync for ``source`` and return its outcome.

        Always returns a result for a run that was started; success or
        failure is carried by ``status``.

        Raises:
            UnknownGatewayError: If the source is not registered.
            SyncAlreadyRunningError: If a run for the same gateway is in
                progress. No run is created.
        """
        actor = actor or self._actor
        gateway_id = gateway_for_source(source)
        tracker = SyncRunTracker(db, self._clock)
        run = tracker.start(gateway_id, source, sync_type, triggered_by=actor.actor_id)
        run_id = run.id

        counts = SyncCounts()
        committed = SyncCounts()
        client: Optional[GatewayClient] = None
        try:
            client = self.registry(db).build_client(source)
            window = self._resolve_window(client, self._clock.now(), options)
            imports_contacts = getattr(client, "record_kind", "transaction") == "contact"
            logger.info(
                "%s: fetching %s .. %s",
                source, window.start.isoformat(), window.end.isoformat(),
            )

            cursor: Any = None
            while True:
                page = client.fetch_page(window, cursor)
                for raw in page.records:
                    counts.total += 1
                    if imports_contacts:
                        result = self.process_contact(db, client, raw, actor=actor)
                    else:
                        result = self.process_record(db, client, raw, run_id=run_id, actor=actor)
                    if result.outcome is RecordOutcome.SYNCED:
                        counts.synced += 1
                    else:
                        counts.skipped += 1
                    if result.contact_created:
                        counts.contacts_added += 1

                tracker.record_counts(run_id, counts)
                db.commit()
                committed = counts.copy()

                if tracker.is_cancelled(run_id):
                    logger.info("%s: run %s cancelled, stopping", source, run_id[:8])
                    break
                if page.next_cursor is None:
                    tracker.complete(run_id, counts)
                    break
                if page.next_cursor == cursor:
                    raise GatewayDataError(
                        "Gateway returned the same page cursor twice", gateway=gateway_id
                    )
                cursor = page.next_cursor

        except GatewayError as e:
            # Records processed so far are intact; keep them
            db.commit()
            logger.warning("%s sync failed: %s", source, e)
            tracker.fail(run_id, str(e), counts)

        except Exception as e:
            # Safety net for unexpected errors
            db.rollback()
            logger.error("Unexpected error during %s sync: %s", source, e, exc_info=True)
            tracker.fail(run_id, f"Unexpected error: {e}", committed)

        finally:
            if client is not None:
                client.close()

        return self._result(tracker, run_id, gateway_id, source)

    @staticmethod
    def _result(tracker: SyncRunTracker, run_id: str, gateway_id: str, source: str) -> SyncResult:
        run = tracker.get_run(run_id)
        result = SyncResult(
            run_id=run_id,
            gateway=gateway_id,
            source=source,
            status=run.status,
            synced=run.transactions_synced,
            skipped=run.transactions_skipped,
            contacts_added=run.contacts_created,
            total=run.transactions_total,
            error_message=run.error_message,
        )
        log = logger.info if result.succeeded else logger.warning
        log("Sync run %s: %s", run_id[:8], result.summary())
        return result

    def process_record(
        self,
        db: Session,
        client: GatewayClient,
        raw: dict[str, Any],
        run_id: Optional[str] = None,
        actor: Optional[ActorContext] = None,
    ) -> RecordResult:
        """Map one raw record and record it.

        Raises:
            GatewayError: Only if mapping needs a gateway call that fails.
        """
        try:
            transaction = client.map_record(raw)
        except MissingIdentityError as e:
            logger.warning("%s: skipping record: %s", client.source_name, e)
            return _skip(str(e))
        if transaction is None:
            return _skip("not a completed payment")
        return self.record_transaction(db, transaction, run_id=run_id, actor=actor)

    def record_transaction(
        self,
        db: Session,
        transaction: GatewayTransaction,
        run_id: Optional[str] = None,
        actor: Optional[ActorContext] = None,
        txn_type: str = "payment",
        status: str = "completed",
    ) -> RecordResult:
        """Dedup, resolve the contact and insert a canonical transaction.

        Contact creation and the insert share one savepoint, so a contact is
        never left behind for a transaction that failed to store.
        """
        actor = actor or self._actor
        ledger = TransactionLedger(db, self._clock, actor)
        resolver = ContactResolver(db, actor)
        key = f"{transaction.gateway}:{transaction.gateway_transaction_id}"

        if ledger.exists(transaction.gateway, transaction.gateway_transaction_id):
            logger.debug("Skipping %s: already recorded", key)
            return _skip("duplicate")
        if transaction.amount <= 0:
            return _skip("non-positive amount")

        try:
            with db.begin_nested():
                contact, created = resolver.resolve_or_create(
                    transaction.payer_email,
                    fallback_name=transaction.payer_name,
                    source=transaction.gateway,
                    currency=transaction.currency,
                )
                entry = ledger.insert(
                    NewTransaction(
                        contact_id=contact.id,
                        gateway=transaction.gateway,
                        gateway_transaction_id=transaction.gateway_transaction_id,
                        amount=transaction.amount,
                        currency=transaction.currency,
                        type=txn_type,
                        status=status,
                        description=transaction.description,
                        metadata=transaction.metadata,
                        sync_run_id=run_id,
                        occurred_at=transaction.occurred_at,
                    )
                )
        except MissingIdentityError:
            logger.warning("Skipping %s: no payer email", key)
            return _skip("missing payer email")
        except CRMValidationError as e:
            logger.warning("Skipping %s: %s", key, e)
            return _skip(str(e))
        except DuplicateTransactionError:
            logger.info("Skipping %s: recorded concurrently", key)
            return _skip("duplicate")
        except PersistenceError as e:
            logger.warning("Skipping %s: %s", key, e)
            return _skip(str(e))

        return RecordResult(
            outcome=RecordOutcome.SYNCED,
            contact_created=created,
            transaction_id=entry.transaction_id,
        )

    def process_contact(
        self,
        db: Session,
        client: GatewayClient,
        raw: dict[str, Any],
        actor: Optional[ActorContext] = None,
    ) -> RecordResult:
        """Import one gateway customer as a contact.

        Existing contacts are never updated from gateway data; they count
        as skipped.
        """
        try:
            gateway_contact: Optional[GatewayContact] = client.map_contact(raw)
        except MissingIdentityError as e:
            logger.warning("%s: skipping record: %s", client.source_name, e)
            return _skip(str(e))
        if gateway_contact is None:
            return _skip("deleted customer")

        key = f"{gateway_contact.gateway}:{gateway_contact.external_id}"
        resolver = ContactResolver(db, actor or self._actor)
        try:
            with db.begin_nested():
                _, created = resolver.resolve_or_create(
                    gateway_contact.email,
                    fallback_name=gateway_contact.name,
                    source=gateway_contact.gateway,
                    currency=gateway_contact.currency or "USD",
                )
        except MissingIdentityError:
            logger.warning("Skipping %s: no email", key)
            return _skip("missing payer email")
        except (CRMValidationError, PersistenceError) as e:
            logger.warning("Skipping %s: %s", key, e)
            return _skip(str(e))

        if not created:
            logger.debug("Skipping %s: contact exists", key)
            return _skip("contact exists")
        return RecordResult(outcome=RecordOutcome.SYNCED, contact_created=True)
