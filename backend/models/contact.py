"""Contact model - a CRM customer, lead or prospect."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Contact(Base):
    """A CRM contact, identified by its email address.

    Emails are stored in canonical (stripped, lower-cased) form so lookups
    are case-insensitive. Contacts discovered by a gateway sync record the
    gateway in ``source``.
    """

    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    type = Column(String(20), nullable=False, default="customer")  # customer | lead | prospect
    status = Column(String(20), nullable=False, default="active")
    source = Column(String(50), nullable=False, default="")
    currency = Column(String(3), nullable=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    transactions = relationship("Transaction", back_populates="contact")

    @property
    def display_name(self) -> str:
        """First and last name joined, or the email when both are empty."""
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email
