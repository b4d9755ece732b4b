"""SyncRun model - one attempt to import a gateway's transactions."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

RUN_STATUS_RUNNING = "running"
RUN_STATUS_COMPLETED = "completed"
RUN_STATUS_FAILED = "failed"
RUN_STATUS_CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({RUN_STATUS_COMPLETED, RUN_STATUS_FAILED, RUN_STATUS_CANCELLED})


class SyncRun(Base):
    """A sync run for a single gateway.

    At most one run per gateway may be ``running``. The partial unique
    index enforces this in the database so concurrent starters from
    separate processes cannot both succeed.
    """

    __tablename__ = "sync_runs"
    __table_args__ = (
        Index(
            "uix_sync_run_gateway_running",
            "gateway",
            unique=True,
            sqlite_where=text("status = 'running'"),
            postgresql_where=text("status = 'running'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    gateway = Column(String(20), nullable=False, index=True)
    source = Column(String(20), nullable=False)  # client variant, e.g. "paypal_nvp"
    sync_type = Column(String(20), nullable=False, default="manual")  # manual | historical | cron
    status = Column(String(20), nullable=False, default=RUN_STATUS_RUNNING)
    started_at = Column(DateTime, nullable=False, default=utc_now)
    completed_at = Column(DateTime, nullable=True)
    transactions_synced = Column(Integer, nullable=False, default=0)
    transactions_skipped = Column(Integer, nullable=False, default=0)
    transactions_total = Column(Integer, nullable=False, default=0)
    contacts_created = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    triggered_by = Column(String(100), nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="sync_run")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
