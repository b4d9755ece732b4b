"""Sync run tracker - persistent run records and the per-gateway running gate."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import SyncRun, Transaction
from models.sync_run import (
    RUN_STATUS_CANCELLED,
    RUN_STATUS_COMPLETED,
    RUN_STATUS_FAILED,
    RUN_STATUS_RUNNING,
)
from services.exceptions import SyncAlreadyRunningError
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class SyncCounts:
    """Running tallies for a sync run."""

    synced: int = 0
    skipped: int = 0
    contacts_added: int = 0
    total: int = 0

    def as_columns(self) -> dict[str, int]:
        return {
            "transactions_synced": self.synced,
            "transactions_skipped": self.skipped,
            "contacts_created": self.contacts_added,
            "transactions_total": self.total,
        }

    def copy(self) -> "SyncCounts":
        return SyncCounts(self.synced, self.skipped, self.contacts_added, self.total)


class SyncRunTracker:
    """Creates and terminates :class:`~models.SyncRun` rows.

    Start and termination commit immediately so other processes see the
    running gate. Every termination is a conditional ``running -> X``
    update, so a run is terminated at most once.
    """

    def __init__(self, db: Session, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    def is_running(self, gateway: str) -> bool:
        return (
            self._db.query(SyncRun.id)
            .filter(SyncRun.gateway == gateway, SyncRun.status == RUN_STATUS_RUNNING)
            .first()
        ) is not None

    def start(
        self,
        gateway: str,
        source: str,
        sync_type: str = "manual",
        triggered_by: str | None = None,
    ) -> SyncRun:
        """Open a run for ``gateway``.

        Raises:
            SyncAlreadyRunningError: Another run for the gateway is in
                progress. No row is created.
        """
        if self.is_running(gateway):
            raise SyncAlreadyRunningError(gateway)

        run = SyncRun(
            gateway=gateway,
            source=source,
            sync_type=sync_type,
            status=RUN_STATUS_RUNNING,
            started_at=self._clock.now(),
            triggered_by=triggered_by,
        )
        self._db.add(run)
        try:
            self._db.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent starter
            self._db.rollback()
            raise SyncAlreadyRunningError(gateway) from e

        logger.info("Sync run %s started: %s via %s (%s)", run.id[:8], gateway, source, sync_type)
        return run

    def _terminate(
        self,
        run_id: str,
        status: str,
        counts: SyncCounts | None = None,
        message: str | None = None,
    ) -> bool:
        values = {
            SyncRun.status: status,
            SyncRun.completed_at: self._clock.now(),
        }
        if message is not None:
            values[SyncRun.error_message] = message
        if counts is not None:
            values.update({getattr(SyncRun, col): v for col, v in counts.as_columns().items()})

        updated = (
            self._db.query(SyncRun)
            .filter(SyncRun.id == run_id, SyncRun.status == RUN_STATUS_RUNNING)
            .update(values, synchronize_session=False)
        )
        self._db.commit()
        if not updated:
            logger.debug("Sync run %s was not running; %s ignored", run_id[:8], status)
        return updated == 1

    def complete(self, run_id: str, counts: SyncCounts) -> bool:
        return self._terminate(run_id, RUN_STATUS_COMPLETED, counts)

    def fail(self, run_id: str, message: str, counts: SyncCounts | None = None) -> bool:
        return self._terminate(run_id, RUN_STATUS_FAILED, counts, message)

    def cancel(self, run_id: str, message: str | None = None) -> bool:
        """Request cooperative cancellation.

        The orchestrator notices between pages and stops.
        """
        return self._terminate(run_id, RUN_STATUS_CANCELLED, message=message or "Cancelled by user")

    def is_cancelled(self, run_id: str) -> bool:
        status = (
            self._db.query(SyncRun.status)
            .filter(SyncRun.id == run_id)
            .scalar()
        )
        return status == RUN_STATUS_CANCELLED

    def record_counts(self, run_id: str, counts: SyncCounts) -> None:
        """Checkpoint progress counts on a run (running or cancelled).

        Flushes only; the caller commits.
        """
        (
            self._db.query(SyncRun)
            .filter(
                SyncRun.id == run_id,
                SyncRun.status.in_((RUN_STATUS_RUNNING, RUN_STATUS_CANCELLED)),
            )
            .update(
                {getattr(SyncRun, col): v for col, v in counts.as_columns().items()},
                synchronize_session=False,
            )
        )

    def get_run(self, run_id: str) -> SyncRun | None:
        return self._db.get(SyncRun, run_id)

    def list_runs(self, gateway: str | None = None, limit: int = 10) -> list[SyncRun]:
        query = self._db.query(SyncRun)
        if gateway:
            query = query.filter(SyncRun.gateway == gateway)
        return query.order_by(SyncRun.started_at.desc()).limit(limit).all()

    def last_completed(self, gateway: str) -> SyncRun | None:
        return (
            self._db.query(SyncRun)
            .filter(SyncRun.gateway == gateway, SyncRun.status == RUN_STATUS_COMPLETED)
            .order_by(SyncRun.completed_at.desc())
            .first()
        )

    def purge_older_than(self, days: int) -> int:
        """Delete finished runs started more than ``days`` ago.

        Transactions keep their rows; their run link is cleared.

        Returns:
            Number of runs deleted.
        """
        cutoff = self._clock.now() - timedelta(days=days)
        old_ids = [
            run_id
            for (run_id,) in self._db.query(SyncRun.id)
            .filter(
                SyncRun.started_at < cutoff,
                SyncRun.status.in_((RUN_STATUS_COMPLETED, RUN_STATUS_FAILED, RUN_STATUS_CANCELLED)),
            )
            .all()
        ]
        if not old_ids:
            return 0

        (
            self._db.query(Transaction)
            .filter(Transaction.sync_run_id.in_(old_ids))
            .update({Transaction.sync_run_id: None}, synchronize_session=False)
        )
        deleted = (
            self._db.query(SyncRun)
            .filter(SyncRun.id.in_(old_ids))
            .delete(synchronize_session=False)
        )
        self._db.commit()
        logger.info("Purged %d sync runs older than %d days", deleted, days)
        return deleted
