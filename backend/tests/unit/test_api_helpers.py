"""Tests for shared API helpers and query parameter parsing."""

import pytest
from fastapi import HTTPException

from api.helpers import get_or_404
from models import Contact, SyncRun
from utils.query_params import clamp_limit, parse_uuid_param


class TestGetOr404:
    def test_returns_entity(self, db, contact):
        result = get_or_404(db, Contact, contact.id, "Contact not found")
        assert result.email == "jane@example.com"

    def test_raises_404_when_missing(self, db):
        with pytest.raises(HTTPException) as exc_info:
            get_or_404(db, SyncRun, "nonexistent-id", "Sync run not found")
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Sync run not found"


class TestParseUuidParam:
    def test_empty_is_none(self):
        assert parse_uuid_param(None, "contact_id") is None
        assert parse_uuid_param("  ", "contact_id") is None

    def test_valid_uuid_stripped(self):
        value = "3f2b8c1e-8d4a-4c1b-9a55-0f6c2b7d9e10"
        assert parse_uuid_param(f" {value} ", "contact_id") == value

    def test_invalid_uuid_is_400(self):
        with pytest.raises(HTTPException) as exc_info:
            parse_uuid_param("abc", "sync_run_id")
        assert exc_info.value.status_code == 400
        assert "sync_run_id" in exc_info.value.detail


@pytest.mark.parametrize("limit,expected", [(0, 1), (-5, 1), (10, 10), (500, 100)])
def test_clamp_limit(limit, expected):
    assert clamp_limit(limit) == expected
