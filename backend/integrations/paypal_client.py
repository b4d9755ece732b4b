"""PayPal REST client (Transaction Search reporting API).

Implements the GatewayClient protocol against PayPal's OAuth2 REST API.
Access tokens come from the client-credentials grant and are cached until
shortly before they expire.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from config import settings
from integrations.exceptions import (
    GatewayAuthError,
    GatewayConfigurationError,
    GatewayDataError,
    MissingIdentityError,
)
from integrations.gateway_protocol import (
    GatewayCredential,
    GatewayPage,
    GatewayTransaction,
    SyncWindow,
)
from integrations.http_utils import parse_json, send_request
from integrations.parsing_utils import format_gateway_timestamp, parse_amount, parse_iso_datetime
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"
LIVE_BASE_URL = "https://api-m.paypal.com"

# Refresh the token this long before PayPal says it expires.
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)
DEFAULT_TOKEN_LIFETIME = 3600

# T0000 = general payments; "S" = successfully completed.
PAYMENT_TRANSACTION_TYPE = "T0000"
COMPLETED_STATUS = "S"


class PayPalClient:
    """Client for PayPal's REST reporting API."""

    def __init__(
        self,
        credential: GatewayCredential,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
    ):
        self._client_id = credential.get("client_id")
        self._client_secret = credential.get("client_secret")
        self._base_url = SANDBOX_BASE_URL if credential.is_test_mode else LIVE_BASE_URL
        self._clock = clock or SystemClock()
        self._http = http_client or httpx.Client(timeout=settings.GATEWAY_HTTP_TIMEOUT)
        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    @property
    def gateway_id(self) -> str:
        return "paypal"

    @property
    def source_name(self) -> str:
        return "paypal"

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def close(self) -> None:
        self._http.close()

    def _get_access_token(self) -> str:
        """Return a valid bearer token, requesting a new one when needed."""
        now = self._clock.now()
        if (
            self._access_token
            and self._token_expires_at is not None
            and now < self._token_expires_at
        ):
            return self._access_token

        if not self.is_configured():
            raise GatewayConfigurationError(
                "PayPal client_id and client_secret are required",
                gateway=self.gateway_id,
            )

        response = send_request(
            self._http,
            "POST",
            f"{self._base_url}/v1/oauth2/token",
            gateway=self.gateway_id,
            retries=settings.GATEWAY_HTTP_RETRIES,
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        body = parse_json(response, self.gateway_id)
        token = body.get("access_token")
        if not token:
            raise GatewayAuthError(
                "PayPal did not return an access token", gateway=self.gateway_id
            )

        try:
            lifetime = int(body.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        except (TypeError, ValueError):
            lifetime = DEFAULT_TOKEN_LIFETIME
        self._access_token = token
        self._token_expires_at = now + timedelta(seconds=lifetime) - TOKEN_EXPIRY_MARGIN
        logger.debug("PayPal: access token obtained, valid for %ds", lifetime)
        return token

    def default_window(self, now: datetime) -> SyncWindow:
        """Trailing N days, from the start of the first day to the end of today."""
        start = (now - timedelta(days=settings.SYNC_DEFAULT_DAYS)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        end = now.replace(hour=23, minute=59, second=59, microsecond=0)
        return SyncWindow(start=start, end=end, page_size=settings.SYNC_PAGE_SIZE)

    def fetch_page(self, window: SyncWindow, cursor: Any = None) -> GatewayPage:
        """Fetch one page of the Transaction Search report.

        The cursor is the 1-based page number.
        """
        page = int(cursor or 1)
        params = {
            "start_date": format_gateway_timestamp(window.start),
            "end_date": format_gateway_timestamp(window.end),
            "page_size": window.page_size,
            "page": page,
            "transaction_type": PAYMENT_TRANSACTION_TYPE,
            "fields": "transaction_info,payer_info,cart_info",
        }

        try:
            response = self._get_report(params)
        except GatewayAuthError:
            # A cached token can be revoked early; retry once with a fresh one.
            if self._access_token is None:
                raise
            logger.info("PayPal: token rejected, requesting a new one")
            self._access_token = None
            response = self._get_report(params)

        body = parse_json(response, self.gateway_id)
        records = body.get("transaction_details") or []
        if not isinstance(records, list):
            raise GatewayDataError(
                "PayPal transaction_details is not a list", gateway=self.gateway_id
            )

        try:
            total_pages = int(body.get("total_pages") or 1)
        except (TypeError, ValueError):
            total_pages = 1
        next_cursor = page + 1 if page < total_pages and records else None

        logger.info("PayPal: page %d/%d fetched (%d records)", page, total_pages, len(records))
        return GatewayPage(records=records, next_cursor=next_cursor)

    def _get_report(self, params: dict[str, Any]) -> httpx.Response:
        token = self._get_access_token()
        return send_request(
            self._http,
            "GET",
            f"{self._base_url}/v1/reporting/transactions",
            gateway=self.gateway_id,
            retries=settings.GATEWAY_HTTP_RETRIES,
            params=params,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        )

    def map_record(self, raw: dict[str, Any]) -> GatewayTransaction | None:
        info = raw.get("transaction_info") or {}
        txn_id = str(info.get("transaction_id") or "").strip()
        if not txn_id:
            raise MissingIdentityError("PayPal record has no transaction_id")

        if info.get("transaction_status") != COMPLETED_STATUS:
            logger.debug("PayPal: skipping %s with status %s", txn_id, info.get("transaction_status"))
            return None

        money = info.get("transaction_amount") or {}
        amount = parse_amount(money.get("value"))
        if amount is None or amount <= 0:
            logger.debug("PayPal: skipping %s with amount %s", txn_id, money.get("value"))
            return None

        payer = raw.get("payer_info") or {}
        payer_name = payer.get("payer_name") or {}
        name = " ".join(
            part for part in (payer_name.get("given_name"), payer_name.get("surname")) if part
        ).strip() or (payer_name.get("alternate_full_name") or "")

        description = info.get("transaction_note") or info.get("transaction_subject") or ""
        if not description:
            items = (raw.get("cart_info") or {}).get("item_details") or []
            if items and isinstance(items[0], dict):
                description = items[0].get("item_name") or ""

        metadata = {"paypal_transaction_id": txn_id}
        if payer.get("account_id"):
            metadata["paypal_payer_id"] = payer["account_id"]

        return GatewayTransaction(
            gateway=self.gateway_id,
            gateway_transaction_id=txn_id,
            payer_email=(payer.get("email_address") or "").strip(),
            payer_name=name,
            amount=amount,
            currency=(money.get("currency_code") or "USD").upper(),
            description=description,
            occurred_at=parse_iso_datetime(info.get("transaction_initiation_date")),
            metadata=metadata,
        )
