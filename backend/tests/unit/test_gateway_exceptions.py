"""Unit tests for the gateway exception hierarchy."""

import pytest

from integrations.exceptions import (
    GatewayAPIError,
    GatewayAuthError,
    GatewayConfigurationError,
    GatewayConnectionError,
    GatewayDataError,
    GatewayError,
    MissingIdentityError,
    UnknownGatewayError,
)


class TestExceptionHierarchy:
    """All run-fatal exceptions are caught by except GatewayError."""

    def test_catch_all_gateway_errors(self):
        exceptions = [
            GatewayConfigurationError("config", gateway="stripe"),
            GatewayAuthError("auth", gateway="paypal"),
            GatewayConnectionError("conn", gateway="paypal"),
            GatewayAPIError("api", gateway="stripe", status_code=400),
            GatewayDataError("data", gateway="paypal"),
        ]
        for exc in exceptions:
            with pytest.raises(GatewayError):
                raise exc

    def test_missing_identity_is_not_a_gateway_error(self):
        """Missing identity only skips a record, it never fails a run."""
        assert not isinstance(MissingIdentityError(), GatewayError)

    def test_unknown_gateway_is_value_error(self):
        exc = UnknownGatewayError("square")
        assert isinstance(exc, ValueError)
        assert exc.name == "square"
        assert str(exc) == "Unknown gateway: square"

    def test_gateway_attribute(self):
        assert GatewayAuthError("nope", gateway="paypal").gateway == "paypal"


class TestGatewayAPIErrorRetriable:
    """GatewayAPIError.retriable depends on status_code."""

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_retriable_statuses(self, status):
        assert GatewayAPIError("x", status_code=status).retriable is True

    @pytest.mark.parametrize("status", [400, 401, 404])
    def test_client_errors_not_retriable(self, status):
        assert GatewayAPIError("x", status_code=status).retriable is False

    def test_none_status_is_not_retriable(self):
        assert GatewayAPIError("unknown").retriable is False


class TestConnectionErrorRetriable:
    def test_default_retriable(self):
        assert GatewayConnectionError("timeout").retriable is True

    def test_explicit_not_retriable(self):
        assert GatewayConnectionError("dns", retriable=False).retriable is False


class TestExceptionStr:
    def test_gateway_error_str(self):
        assert str(GatewayError("something broke", gateway="stripe")) == "something broke"

    def test_missing_identity_record_id(self):
        exc = MissingIdentityError("no id", record_id="ch_1")
        assert exc.record_id == "ch_1"
        assert str(exc) == "no id"
