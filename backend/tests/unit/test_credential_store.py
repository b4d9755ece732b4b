"""Tests for CredentialStore."""

import pytest

from integrations.exceptions import UnknownGatewayError
from services.credential_store import CredentialStore, normalize_mode
from tests.fixtures.mocks import DictSettingsReader


def _store(**groups) -> CredentialStore:
    return CredentialStore(DictSettingsReader(groups))


class TestGetCredentials:
    def test_missing_settings_yield_disabled_test_credential(self):
        credential = _store().get_credentials("stripe")
        assert credential.enabled is False
        assert credential.mode == "test"
        assert credential.get("test_secret") == ""

    def test_enabled_accepts_string_forms(self):
        store = _store(paypal={"enabled": "yes"}, stripe={"enabled": "0"})
        assert store.get_credentials("paypal").enabled is True
        assert store.get_credentials("stripe").enabled is False

    def test_fields_exclude_enabled_and_mode(self):
        credential = _store(paypal={"enabled": True, "mode": "live", "client_id": "cid"}).get_credentials("paypal")
        assert credential.fields == {"client_id": "cid"}
        assert credential.mode == "live"
        assert not credential.is_test_mode


class TestNormalizeMode:
    @pytest.mark.parametrize("value,expected", [
        ("live", "live"),
        ("LIVE", "live"),
        ("sandbox", "test"),
        ("test", "test"),
        (None, "test"),
        ("production", "test"),
    ])
    def test_modes(self, value, expected):
        assert normalize_mode(value) == expected


class TestAvailability:
    def test_paypal_rest_needs_client_credentials(self):
        store = _store(paypal={"enabled": True, "client_id": "cid"})
        assert store.missing_fields("paypal") == ["client_secret"]
        assert store.is_available("paypal") is False

    def test_paypal_available_when_complete(self):
        store = _store(paypal={"enabled": True, "client_id": "cid", "client_secret": "sec"})
        assert store.is_available("paypal") is True

    def test_nvp_source_has_its_own_requirements(self):
        store = _store(paypal={"enabled": True, "client_id": "cid", "client_secret": "sec"})
        assert store.missing_fields("paypal_nvp") == ["api_username", "api_password", "api_signature"]
        assert store.is_source_available("paypal") is True

    def test_disabled_gateway_unavailable_even_with_credentials(self):
        store = _store(paypal={"enabled": False, "client_id": "cid", "client_secret": "sec"})
        assert "gateway is disabled" in store.missing_fields("paypal")
        assert store.is_available("paypal") is False

    def test_stripe_secret_follows_mode(self):
        test_mode = _store(stripe={"enabled": True, "mode": "test", "live_secret": "sk_live"})
        live_mode = _store(stripe={"enabled": True, "mode": "live", "live_secret": "sk_live"})
        assert test_mode.missing_fields("stripe") == ["test_secret"]
        assert live_mode.is_available("stripe") is True

    def test_customer_import_needs_stripe_secret(self):
        store = _store(stripe={"enabled": True, "mode": "live", "test_secret": "sk_test"})
        assert store.missing_fields("stripe_customers") == ["live_secret"]

    def test_whitespace_secret_counts_as_missing(self):
        store = _store(stripe={"enabled": True, "test_secret": "   "})
        assert store.missing_fields("stripe") == ["test_secret"]

    def test_unknown_source_raises(self):
        with pytest.raises(UnknownGatewayError):
            _store().missing_fields("square")
