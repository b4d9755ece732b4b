"""Stripe clients (Charges and Customers APIs).

Implements the GatewayClient protocol through the ``stripe`` SDK, using
the static secret key for the active mode on every request. Lists are
paged with ``starting_after`` while ``has_more`` is set.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

import stripe

from config import settings
from integrations.exceptions import (
    GatewayAPIError,
    GatewayAuthError,
    GatewayConfigurationError,
    GatewayConnectionError,
    GatewayDataError,
    GatewayError,
    MissingIdentityError,
)
from integrations.gateway_protocol import (
    GatewayContact,
    GatewayCredential,
    GatewayPage,
    GatewayTransaction,
    SyncWindow,
)
from integrations.parsing_utils import minor_units_to_amount, parse_unix_timestamp
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

API_VERSION = "2023-10-16"


def to_plain_dict(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or a plain mapping) to a dict."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def translate_stripe_error(e: stripe.StripeError, gateway: str = "stripe") -> GatewayError:
    """Map an SDK exception onto the gateway error hierarchy."""
    message = getattr(e, "user_message", None) or str(e) or e.__class__.__name__
    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        return GatewayAuthError(f"Stripe rejected the API key: {message}", gateway=gateway)
    if isinstance(e, stripe.APIConnectionError):
        return GatewayConnectionError(f"Could not reach Stripe: {message}", gateway=gateway)
    status = getattr(e, "http_status", None)
    return GatewayAPIError(
        f"stripe API error (HTTP {status}): {message}",
        gateway=gateway,
        status_code=status,
    )


class StripeClient:
    """Client for Stripe's Charges API."""

    def __init__(self, credential: GatewayCredential, clock: Clock | None = None):
        self._secret = (
            credential.get("test_secret") if credential.is_test_mode
            else credential.get("live_secret")
        )
        self._clock = clock or SystemClock()
        self._customer_emails: dict[str, str] = {}

    @property
    def gateway_id(self) -> str:
        return "stripe"

    @property
    def source_name(self) -> str:
        return "stripe"

    def is_configured(self) -> bool:
        return bool(self._secret)

    def close(self) -> None:
        # The SDK manages its own HTTP client
        pass

    def _call(self, method: Callable[..., Any], *args, **params) -> Any:
        if not self.is_configured():
            raise GatewayConfigurationError(
                "Stripe secret key for the active mode is required",
                gateway=self.gateway_id,
            )
        try:
            return method(*args, api_key=self._secret, stripe_version=API_VERSION, **params)
        except stripe.StripeError as e:
            raise translate_stripe_error(e, self.gateway_id) from e

    def _list_page(self, method: Callable[..., Any], cursor: Any, **params) -> GatewayPage:
        if cursor:
            params["starting_after"] = cursor
        result = self._call(method, **params)

        items = getattr(result, "data", None)
        if not isinstance(items, list):
            raise GatewayDataError("Stripe list response has no data array", gateway=self.gateway_id)
        records = [to_plain_dict(item) for item in items]

        has_more = bool(getattr(result, "has_more", False))
        next_cursor = records[-1].get("id") if has_more and records else None
        return GatewayPage(records=records, next_cursor=next_cursor)

    def default_window(self, now: datetime) -> SyncWindow:
        return SyncWindow(
            start=now - timedelta(days=settings.SYNC_DEFAULT_DAYS),
            end=now,
            page_size=settings.SYNC_PAGE_SIZE,
        )

    def fetch_page(self, window: SyncWindow, cursor: Any = None) -> GatewayPage:
        """List one page of charges; the cursor is the last charge id seen."""
        page = self._list_page(
            stripe.Charge.list,
            cursor,
            created={"gte": int(window.start.timestamp()), "lte": int(window.end.timestamp())},
            limit=window.page_size,
        )
        logger.info("Stripe: %d charges fetched (more=%s)", len(page.records), page.next_cursor is not None)
        return page

    def _lookup_customer_email(self, customer: Any) -> str:
        """Resolve a charge's customer to an email (cached per client).

        A failed lookup yields an empty email, so only that charge is
        skipped; authentication failures still end the run.
        """
        if isinstance(customer, dict):
            return customer.get("email") or ""
        if not customer:
            return ""
        if customer in self._customer_emails:
            return self._customer_emails[customer]

        try:
            body = to_plain_dict(self._call(stripe.Customer.retrieve, customer))
        except GatewayAuthError:
            raise
        except (GatewayAPIError, GatewayConnectionError) as e:
            if isinstance(e, GatewayAPIError) and e.status_code == 404:
                logger.warning("Stripe: customer %s not found", customer)
                self._customer_emails[customer] = ""
            else:
                logger.warning("Stripe: customer %s lookup failed: %s", customer, e)
            return ""
        email = body.get("email") or ""
        self._customer_emails[customer] = email
        return email

    def map_record(self, raw: dict[str, Any]) -> GatewayTransaction | None:
        charge_id = str(raw.get("id") or "").strip()
        if not charge_id:
            raise MissingIdentityError("Stripe charge has no id")

        if raw.get("status") != "succeeded":
            logger.debug("Stripe: skipping %s with status %s", charge_id, raw.get("status"))
            return None

        currency = (raw.get("currency") or "usd").upper()
        amount = minor_units_to_amount(raw.get("amount"), currency)
        if amount is None or amount <= 0:
            logger.debug("Stripe: skipping %s with amount %s", charge_id, raw.get("amount"))
            return None

        billing = raw.get("billing_details") or {}
        email = (
            billing.get("email")
            or raw.get("receipt_email")
            or self._lookup_customer_email(raw.get("customer"))
        )

        customer = raw.get("customer")
        customer_id = customer.get("id") if isinstance(customer, dict) else customer
        metadata = {"stripe_charge": charge_id}
        if customer_id:
            metadata["stripe_customer"] = customer_id

        return GatewayTransaction(
            gateway=self.gateway_id,
            gateway_transaction_id=charge_id,
            payer_email=(email or "").strip(),
            payer_name=(billing.get("name") or "").strip(),
            amount=amount,
            currency=currency,
            description=raw.get("description") or "",
            occurred_at=parse_unix_timestamp(raw.get("created")),
            metadata=metadata,
        )


class StripeCustomerClient(StripeClient):
    """Imports Stripe customers as CRM contacts.

    Records are contacts, not payments: the orchestrator routes them
    through ``map_contact`` and never writes ledger rows for them.
    """

    record_kind = "contact"

    @property
    def source_name(self) -> str:
        return "stripe_customers"

    def fetch_page(self, window: SyncWindow, cursor: Any = None) -> GatewayPage:
        """List one page of customers created inside the window."""
        page = self._list_page(
            stripe.Customer.list,
            cursor,
            created={"gte": int(window.start.timestamp()), "lte": int(window.end.timestamp())},
            limit=window.page_size,
        )
        logger.info("Stripe: %d customers fetched (more=%s)", len(page.records), page.next_cursor is not None)
        return page

    def map_record(self, raw: dict[str, Any]) -> GatewayTransaction | None:
        return None

    def map_contact(self, raw: dict[str, Any]) -> GatewayContact | None:
        customer_id = str(raw.get("id") or "").strip()
        if not customer_id:
            raise MissingIdentityError("Stripe customer has no id")
        if raw.get("deleted"):
            return None
        return GatewayContact(
            gateway=self.gateway_id,
            external_id=customer_id,
            email=(raw.get("email") or "").strip(),
            name=(raw.get("name") or "").strip(),
            currency=(raw.get("currency") or "usd").upper(),
        )
