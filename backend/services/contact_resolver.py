"""Contact resolver - finds or creates the contact behind a payer email."""

import logging
import re

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from integrations.exceptions import MissingIdentityError
from models import Contact
from services.exceptions import ContactValidationError, PersistenceError
from utils.actor import SYSTEM_ACTOR, ActorContext

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 100


def canonical_email(email: str | None) -> str:
    """Canonical form used for storage and lookup."""
    return (email or "").strip().lower()


def split_display_name(name: str | None) -> tuple[str, str]:
    """Split ``"Jane van Dyke"`` into ``("Jane", "van Dyke")``."""
    parts = (name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


class ContactResolver:
    """Maps payer emails to contacts, creating a contact on first sight.

    Existing contacts are never modified: a gateway-supplied name only
    seeds a brand-new contact.
    """

    def __init__(self, db: Session, actor: ActorContext = SYSTEM_ACTOR):
        self._db = db
        self._actor = actor

    def find_by_email(self, email: str) -> Contact | None:
        canonical = canonical_email(email)
        if not canonical:
            return None
        return (
            self._db.query(Contact)
            .filter(func.lower(Contact.email) == canonical)
            .order_by(Contact.created_at)
            .first()
        )

    def resolve_or_create(
        self,
        email: str | None,
        fallback_name: str = "",
        source: str = "",
        currency: str | None = None,
    ) -> tuple[Contact, bool]:
        """Return ``(contact, created)`` for ``email``.

        Raises:
            MissingIdentityError: If the email is empty.
            ContactValidationError: If the email is malformed.
            PersistenceError: If the new contact could not be stored.
        """
        canonical = canonical_email(email)
        if not canonical:
            raise MissingIdentityError("Payer email is empty")
        if len(canonical) > MAX_EMAIL_LENGTH or not _EMAIL_RE.match(canonical):
            raise ContactValidationError(f"Invalid email address: {email!r}")

        existing = self.find_by_email(canonical)
        if existing is not None:
            return existing, False

        first_name, last_name = split_display_name(fallback_name)
        contact = Contact(
            email=canonical,
            first_name=first_name[:MAX_NAME_LENGTH],
            last_name=last_name[:MAX_NAME_LENGTH],
            type="customer",
            status="active",
            source=source,
            currency=currency,
            created_by=self._actor.actor_id,
        )
        try:
            with self._db.begin_nested():
                self._db.add(contact)
                self._db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create contact for {canonical}") from e

        logger.info("Contact created from %s: %s", source or "manual", canonical)
        return contact, True
