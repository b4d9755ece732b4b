"""Tests for the Stripe clients."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from integrations.exceptions import (
    GatewayAPIError,
    GatewayAuthError,
    GatewayConfigurationError,
    GatewayConnectionError,
    GatewayDataError,
    MissingIdentityError,
)
from integrations.gateway_protocol import GatewayCredential, SyncWindow
from integrations.stripe_client import (
    API_VERSION,
    StripeClient,
    StripeCustomerClient,
    translate_stripe_error,
)
from tests.fixtures.mocks import FixedClock

WINDOW = SyncWindow(
    start=datetime(2024, 5, 16, 12, 0, tzinfo=timezone.utc),
    end=datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc),
    page_size=2,
)


def _charge(charge_id="ch_1", amount=2599, currency="usd", status="succeeded", **extra):
    charge = {
        "id": charge_id,
        "amount": amount,
        "currency": currency,
        "status": status,
        "created": 1718452800,
        "billing_details": {"email": "alice@example.com", "name": "Alice Smith"},
        "customer": None,
        "receipt_email": None,
        "description": "Consulting",
    }
    charge.update(extra)
    return charge


def _listing(records, has_more=False):
    return SimpleNamespace(data=list(records), has_more=has_more)


def _credential(mode="test", **fields):
    values = {"test_secret": "sk_test_1", "live_secret": "sk_live_1", **fields}
    return GatewayCredential("stripe", enabled=True, mode=mode, fields=values)


def _client(mode="test", **fields):
    return StripeClient(_credential(mode, **fields), clock=FixedClock())


class TestFetchPage:
    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_request_params_and_auth(self, mock_list):
        mock_list.return_value = _listing([_charge()])
        page = _client().fetch_page(WINDOW)

        mock_list.assert_called_once_with(
            api_key="sk_test_1",
            stripe_version=API_VERSION,
            created={"gte": int(WINDOW.start.timestamp()), "lte": int(WINDOW.end.timestamp())},
            limit=2,
        )
        assert page.records == [_charge()]
        assert page.next_cursor is None

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_has_more_uses_last_charge_id(self, mock_list):
        mock_list.side_effect = [
            _listing([_charge("ch_1"), _charge("ch_2")], has_more=True),
            _listing([_charge("ch_3")]),
        ]
        client = _client()
        page1 = client.fetch_page(WINDOW)
        assert page1.next_cursor == "ch_2"
        page2 = client.fetch_page(WINDOW, page1.next_cursor)
        assert mock_list.call_args.kwargs["starting_after"] == "ch_2"
        assert page2.next_cursor is None

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_stripe_objects_converted_to_dicts(self, mock_list):
        charge = SimpleNamespace(to_dict=lambda: _charge())
        mock_list.return_value = _listing([charge])
        record = _client().fetch_page(WINDOW).records[0]
        assert type(record) is dict
        assert record["billing_details"]["email"] == "alice@example.com"

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_live_mode_uses_live_secret(self, mock_list):
        mock_list.return_value = _listing([])
        _client(mode="live").fetch_page(WINDOW)
        assert mock_list.call_args.kwargs["api_key"] == "sk_live_1"

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_missing_secret(self, mock_list):
        with pytest.raises(GatewayConfigurationError):
            _client(test_secret="").fetch_page(WINDOW)
        mock_list.assert_not_called()

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_invalid_key(self, mock_list):
        mock_list.side_effect = stripe.AuthenticationError("Invalid API Key provided")
        with pytest.raises(GatewayAuthError, match="Invalid API Key"):
            _client().fetch_page(WINDOW)

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_connection_error(self, mock_list):
        mock_list.side_effect = stripe.APIConnectionError("Network down")
        with pytest.raises(GatewayConnectionError):
            _client().fetch_page(WINDOW)

    @patch("integrations.stripe_client.stripe.Charge.list")
    def test_listing_without_data_array(self, mock_list):
        mock_list.return_value = SimpleNamespace(data=None, has_more=False)
        with pytest.raises(GatewayDataError):
            _client().fetch_page(WINDOW)


class TestTranslateError:
    def test_api_error_keeps_status(self):
        error = translate_stripe_error(stripe.APIError("boom", http_status=502))
        assert isinstance(error, GatewayAPIError)
        assert error.status_code == 502

    def test_permission_error_is_auth(self):
        error = translate_stripe_error(stripe.PermissionError("Restricted key"))
        assert isinstance(error, GatewayAuthError)


class TestMapRecord:
    def test_minor_units_and_currency(self):
        txn = _client().map_record(_charge(amount=2599, currency="usd"))
        assert txn.amount == Decimal("25.99")
        assert txn.currency == "USD"
        assert txn.payer_email == "alice@example.com"
        assert txn.payer_name == "Alice Smith"
        assert txn.occurred_at == datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
        assert txn.metadata == {"stripe_charge": "ch_1"}

    def test_zero_decimal_currency(self):
        txn = _client().map_record(_charge(amount=1500, currency="jpy"))
        assert txn.amount == Decimal("1500.00")

    @pytest.mark.parametrize("status", ["pending", "failed"])
    def test_unsucceeded_skipped(self, status):
        assert _client().map_record(_charge(status=status)) is None

    def test_receipt_email_fallback(self):
        charge = _charge(billing_details={}, receipt_email="receipt@example.com")
        assert _client().map_record(charge).payer_email == "receipt@example.com"

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_customer_lookup_cached(self, mock_retrieve):
        mock_retrieve.return_value = {"id": "cus_1", "email": "cust@example.com"}
        client = _client()
        for charge_id in ("ch_1", "ch_2"):
            txn = client.map_record(_charge(charge_id, billing_details={}, customer="cus_1"))
            assert txn.payer_email == "cust@example.com"
            assert txn.metadata["stripe_customer"] == "cus_1"
        mock_retrieve.assert_called_once_with("cus_1", api_key="sk_test_1", stripe_version=API_VERSION)

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_expanded_customer_object(self, mock_retrieve):
        charge = _charge(billing_details={}, customer={"id": "cus_2", "email": "exp@example.com"})
        txn = _client().map_record(charge)
        assert txn.payer_email == "exp@example.com"
        assert txn.metadata["stripe_customer"] == "cus_2"
        mock_retrieve.assert_not_called()

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_deleted_customer_yields_empty_email(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.InvalidRequestError(
            "No such customer: 'cus_gone'", "id", http_status=404
        )
        client = _client()
        for charge_id in ("ch_1", "ch_2"):
            charge = _charge(charge_id, billing_details={}, customer="cus_gone")
            assert client.map_record(charge).payer_email == ""
        assert mock_retrieve.call_count == 1

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_customer_lookup_server_error_yields_empty_email(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.APIError("boom", http_status=500)
        txn = _client().map_record(_charge(billing_details={}, customer="cus_1"))
        assert txn.payer_email == ""

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_customer_lookup_connection_error_yields_empty_email(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.APIConnectionError("timed out")
        txn = _client().map_record(_charge(billing_details={}, customer="cus_1"))
        assert txn.payer_email == ""

    @patch("integrations.stripe_client.stripe.Customer.retrieve")
    def test_customer_lookup_auth_error_propagates(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.AuthenticationError("Expired API Key provided")
        with pytest.raises(GatewayAuthError):
            _client().map_record(_charge(billing_details={}, customer="cus_1"))

    def test_missing_id(self):
        with pytest.raises(MissingIdentityError):
            _client().map_record(_charge(charge_id=""))


class TestCustomerClient:
    def _customer_client(self, **fields):
        return StripeCustomerClient(_credential(**fields), clock=FixedClock())

    @patch("integrations.stripe_client.stripe.Customer.list")
    def test_lists_customers_in_window(self, mock_list):
        mock_list.return_value = _listing([{"id": "cus_1"}, {"id": "cus_2"}], has_more=True)
        page = self._customer_client().fetch_page(WINDOW, "cus_0")

        kwargs = mock_list.call_args.kwargs
        assert kwargs["created"] == {"gte": int(WINDOW.start.timestamp()), "lte": int(WINDOW.end.timestamp())}
        assert kwargs["starting_after"] == "cus_0"
        assert kwargs["api_key"] == "sk_test_1"
        assert page.next_cursor == "cus_2"

    def test_identity(self):
        client = self._customer_client()
        assert (client.gateway_id, client.source_name, client.record_kind) == ("stripe", "stripe_customers", "contact")

    def test_map_contact(self):
        contact = self._customer_client().map_contact(
            {"id": "cus_1", "email": " Bob@Example.com ", "name": "Bob Jones", "currency": "eur"}
        )
        assert contact.gateway == "stripe"
        assert contact.external_id == "cus_1"
        assert contact.email == "Bob@Example.com"
        assert contact.name == "Bob Jones"
        assert contact.currency == "EUR"

    def test_map_contact_defaults_currency(self):
        contact = self._customer_client().map_contact({"id": "cus_1", "email": "a@example.com", "currency": None})
        assert contact.currency == "USD"

    def test_deleted_customer_skipped(self):
        assert self._customer_client().map_contact({"id": "cus_1", "deleted": True}) is None

    def test_customer_without_id(self):
        with pytest.raises(MissingIdentityError):
            self._customer_client().map_contact({"email": "a@example.com"})

    def test_customers_are_not_transactions(self):
        assert self._customer_client().map_record({"id": "cus_1"}) is None
