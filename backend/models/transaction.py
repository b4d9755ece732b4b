"""Transaction model - a money movement recorded in the CRM ledger."""

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Transaction(Base):
    """A ledger entry, either entered manually or imported from a gateway.

    Gateway imports are keyed by ``(gateway, gateway_transaction_id)``;
    the composite unique constraint makes a repeated import impossible.
    Manual entries leave ``gateway_transaction_id`` NULL, and NULLs never
    collide under the constraint.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "gateway", "gateway_transaction_id",
            name="uix_transaction_gateway_external",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transaction_id = Column(String(20), nullable=False, unique=True)  # "TXN-2024-001"
    contact_id = Column(String(36), ForeignKey("contacts.id"), nullable=False, index=True)
    sync_run_id = Column(String(36), ForeignKey("sync_runs.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(String(20), nullable=False, default="payment")  # payment | refund | subscription | payout
    gateway = Column(String(20), nullable=False, default="manual")
    gateway_transaction_id = Column(String(255), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="pending")  # pending | completed | failed | refunded
    description = Column(Text, nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)  # JSON string of gateway identifiers
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    contact = relationship("Contact", back_populates="transactions")
    sync_run = relationship("SyncRun", back_populates="transactions")
