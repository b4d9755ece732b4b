"""Tests for ContactResolver."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from integrations.exceptions import MissingIdentityError
from models import Contact
from services.contact_resolver import ContactResolver, canonical_email, split_display_name
from services.exceptions import ContactValidationError, PersistenceError
from utils.actor import ActorContext
from tests.fixtures import create_contact


class TestHelpers:
    def test_canonical_email(self):
        assert canonical_email("  Jane@Example.COM ") == "jane@example.com"
        assert canonical_email(None) == ""

    @pytest.mark.parametrize("name,expected", [
        ("Jane Doe", ("Jane", "Doe")),
        ("Jane van Dyke", ("Jane", "van Dyke")),
        ("Cher", ("Cher", "")),
        ("   ", ("", "")),
        (None, ("", "")),
    ])
    def test_split_display_name(self, name, expected):
        assert split_display_name(name) == expected


class TestResolveOrCreate:
    def test_creates_contact_from_gateway_data(self, db):
        resolver = ContactResolver(db, ActorContext("webhook"))
        contact, created = resolver.resolve_or_create(
            "New.Payer@Example.com", fallback_name="New Payer", source="stripe", currency="USD"
        )
        assert created is True
        assert contact.email == "new.payer@example.com"
        assert (contact.first_name, contact.last_name) == ("New", "Payer")
        assert contact.source == "stripe"
        assert contact.type == "customer"
        assert contact.created_by == "webhook"

    def test_existing_contact_matched_case_insensitively(self, db, contact):
        found, created = ContactResolver(db).resolve_or_create("JANE@EXAMPLE.COM ", fallback_name="Someone Else")
        assert created is False
        assert found.id == contact.id

    def test_existing_contact_never_overwritten(self, db, contact):
        ContactResolver(db).resolve_or_create("jane@example.com", fallback_name="Gateway Name", source="paypal")
        db.refresh(contact)
        assert (contact.first_name, contact.last_name) == ("Jane", "Doe")
        assert contact.source == "manual"

    def test_mixed_case_legacy_row_matched(self, db):
        legacy = create_contact(db, "Legacy@Example.com")
        found, created = ContactResolver(db).resolve_or_create("legacy@example.com")
        assert created is False
        assert found.id == legacy.id

    def test_second_resolution_reuses_new_contact(self, db):
        resolver = ContactResolver(db)
        first, _ = resolver.resolve_or_create("a@example.com")
        second, created = resolver.resolve_or_create("A@example.com")
        assert created is False
        assert second.id == first.id
        assert db.query(Contact).count() == 1

    @pytest.mark.parametrize("email", ["", "   ", None])
    def test_empty_email_is_missing_identity(self, db, email):
        with pytest.raises(MissingIdentityError):
            ContactResolver(db).resolve_or_create(email)

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@example.com", "x" * 250 + "@example.com"])
    def test_invalid_email_rejected(self, db, email):
        with pytest.raises(ContactValidationError):
            ContactResolver(db).resolve_or_create(email)
        assert db.query(Contact).count() == 0

    def test_no_name_leaves_names_empty(self, db):
        contact, _ = ContactResolver(db).resolve_or_create("anon@example.com")
        assert contact.display_name == "anon@example.com"

    def test_storage_failure_raises_persistence_error(self, db):
        resolver = ContactResolver(db)
        with patch.object(db, "flush", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with pytest.raises(PersistenceError):
                resolver.resolve_or_create("fail@example.com")
