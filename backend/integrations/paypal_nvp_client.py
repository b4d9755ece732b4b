"""PayPal legacy NVP client (TransactionSearch).

Implements the GatewayClient protocol against PayPal's classic
name-value-pair API, which authenticates with an API username, password
and signature. Responses are flat form-encoded maps with per-row keys
suffixed by a 0-based index (``L_TRANSACTIONID0``, ``L_AMT0``, ...).

TransactionSearch returns at most 100 rows per call, newest first. When a
response is full the client asks again with the end date moved back to the
oldest timestamp it has seen, and drops rows already returned in this run.
"""

import logging
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import parse_qsl

import httpx

from config import settings
from integrations.exceptions import (
    GatewayAPIError,
    GatewayAuthError,
    GatewayConfigurationError,
    MissingIdentityError,
)
from integrations.gateway_protocol import (
    GatewayCredential,
    GatewayPage,
    GatewayTransaction,
    SyncWindow,
)
from integrations.http_utils import send_request
from integrations.parsing_utils import format_gateway_timestamp, parse_amount, parse_iso_datetime
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SANDBOX_NVP_URL = "https://api-3t.sandbox.paypal.com/nvp"
LIVE_NVP_URL = "https://api-3t.paypal.com/nvp"
NVP_VERSION = "204.0"

# TransactionSearch caps each response at this many rows.
MAX_ROWS_PER_RESPONSE = 100

SUCCESS_ACKS = frozenset({"Success", "SuccessWithWarning"})
ACCEPTED_STATUSES = frozenset({"Completed", "Processed"})
PAYMENT_TYPES = frozenset({
    "Payment",
    "Recurring Payment",
    "Web Accept",
    "Express Checkout",
    "Subscription Payment",
    "Virtual Terminal",
    "Mobile Payment",
    "Donation",
})
# Security header / API credential failures.
AUTH_ERROR_CODES = frozenset({"10002", "10008"})

ROW_FIELDS = ("TRANSACTIONID", "EMAIL", "NAME", "AMT", "CURRENCYCODE", "STATUS", "TYPE", "TIMESTAMP")


def parse_nvp_rows(response: dict[str, str]) -> list[dict[str, str]]:
    """Walk the indexed keys of a TransactionSearch response.

    Stops at the first index with no ``L_TRANSACTIONID{n}`` key, so the
    walk always terminates after exactly the number of rows present.
    """
    rows = []
    n = 0
    while f"L_TRANSACTIONID{n}" in response:
        rows.append({name: response.get(f"L_{name}{n}", "") for name in ROW_FIELDS})
        n += 1
    return rows


class PayPalNVPClient:
    """Client for PayPal's classic NVP TransactionSearch API.

    Shares the ``paypal`` gateway id with the REST client, so both variants
    deduplicate against the same ledger entries and the same running gate.
    """

    def __init__(
        self,
        credential: GatewayCredential,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
        max_pages: int | None = None,
    ):
        self._username = credential.get("api_username")
        self._password = credential.get("api_password")
        self._signature = credential.get("api_signature")
        self._first_txn_date = credential.get("first_txn_date")
        self._url = SANDBOX_NVP_URL if credential.is_test_mode else LIVE_NVP_URL
        self._clock = clock or SystemClock()
        self._http = http_client or httpx.Client(timeout=settings.PAYPAL_NVP_TIMEOUT)
        self._max_pages = max_pages or settings.NVP_MAX_PAGES
        self._seen_ids: set[str] = set()

    @property
    def gateway_id(self) -> str:
        return "paypal"

    @property
    def source_name(self) -> str:
        return "paypal_nvp"

    def is_configured(self) -> bool:
        return bool(self._username and self._password and self._signature)

    def close(self) -> None:
        self._http.close()

    def default_window(self, now: datetime) -> SyncWindow:
        """From the configured first transaction date, else the trailing year."""
        start = parse_iso_datetime(self._first_txn_date) if self._first_txn_date else None
        if start is None:
            start = now - timedelta(days=settings.NVP_DEFAULT_DAYS)
        return SyncWindow(start=start, end=now, page_size=MAX_ROWS_PER_RESPONSE)

    def _call(self, method: str, **fields: str) -> dict[str, str]:
        """POST one NVP call and return the decoded, acknowledged response."""
        if not self.is_configured():
            raise GatewayConfigurationError(
                "PayPal API username, password and signature are required",
                gateway=self.gateway_id,
            )

        payload = {
            "METHOD": method,
            "VERSION": NVP_VERSION,
            "USER": self._username,
            "PWD": self._password,
            "SIGNATURE": self._signature,
            **fields,
        }
        response = send_request(
            self._http,
            "POST",
            self._url,
            gateway=self.gateway_id,
            retries=settings.GATEWAY_HTTP_RETRIES,
            data=payload,
            timeout=settings.PAYPAL_NVP_TIMEOUT,
        )
        parsed = dict(parse_qsl(response.text, keep_blank_values=True))

        ack = parsed.get("ACK", "")
        if ack not in SUCCESS_ACKS:
            message = (
                parsed.get("L_LONGMESSAGE0")
                or parsed.get("L_SHORTMESSAGE0")
                or f"Unexpected ACK {ack!r}"
            )
            code = parsed.get("L_ERRORCODE0", "")
            if code in AUTH_ERROR_CODES:
                raise GatewayAuthError(
                    f"PayPal NVP authentication failed: {message}", gateway=self.gateway_id
                )
            prefix = f"PayPal NVP error {code}" if code else "PayPal NVP error"
            raise GatewayAPIError(f"{prefix}: {message}", gateway=self.gateway_id)
        if ack == "SuccessWithWarning":
            logger.warning(
                "PayPal NVP %s succeeded with warning: %s",
                method, parsed.get("L_LONGMESSAGE0") or parsed.get("L_SHORTMESSAGE0", ""),
            )
        return parsed

    def fetch_page(self, window: SyncWindow, cursor: Any = None) -> GatewayPage:
        """Fetch one TransactionSearch response.

        The cursor is ``{"end": datetime, "page": int}`` for continuation
        calls; ``None`` starts at the window's end date.
        """
        end = cursor["end"] if cursor else window.end
        page = cursor["page"] if cursor else 1
        if not cursor:
            self._seen_ids.clear()

        parsed = self._call(
            "TransactionSearch",
            STARTDATE=format_gateway_timestamp(window.start),
            ENDDATE=format_gateway_timestamp(end),
            STATUS="All",
        )
        rows = parse_nvp_rows(parsed)

        fresh = []
        for row in rows:
            txn_id = row["TRANSACTIONID"]
            if txn_id and txn_id in self._seen_ids:
                continue
            if txn_id:
                self._seen_ids.add(txn_id)
            fresh.append(row)

        next_cursor = None
        if len(rows) >= MAX_ROWS_PER_RESPONSE and fresh:
            timestamps = [
                ts for ts in (parse_iso_datetime(r["TIMESTAMP"]) for r in rows) if ts is not None
            ]
            oldest = min(timestamps) if timestamps else None
            if oldest is None or oldest <= window.start:
                logger.debug("PayPal NVP: full response reaches the window start")
            elif page >= self._max_pages:
                logger.warning(
                    "PayPal NVP: stopped after %d pages; older transactions were not fetched",
                    page,
                )
            else:
                next_cursor = {"end": oldest, "page": page + 1}

        logger.info(
            "PayPal NVP: page %d fetched (%d rows, %d new)", page, len(rows), len(fresh)
        )
        return GatewayPage(records=fresh, next_cursor=next_cursor)

    def map_record(self, raw: dict[str, Any]) -> GatewayTransaction | None:
        txn_id = (raw.get("TRANSACTIONID") or "").strip()
        if not txn_id:
            raise MissingIdentityError("PayPal NVP row has no transaction id")

        status = raw.get("STATUS") or ""
        if status not in ACCEPTED_STATUSES:
            logger.debug("PayPal NVP: skipping %s with status %s", txn_id, status)
            return None

        txn_type = raw.get("TYPE") or ""
        if txn_type not in PAYMENT_TYPES:
            logger.debug("PayPal NVP: skipping %s of type %s", txn_id, txn_type)
            return None

        amount = parse_amount(raw.get("AMT"))
        if amount is None or amount <= 0:
            logger.debug("PayPal NVP: skipping %s with amount %s", txn_id, raw.get("AMT"))
            return None

        return GatewayTransaction(
            gateway=self.gateway_id,
            gateway_transaction_id=txn_id,
            payer_email=(raw.get("EMAIL") or "").strip(),
            payer_name=(raw.get("NAME") or "").strip(),
            amount=amount,
            currency=(raw.get("CURRENCYCODE") or "USD").upper(),
            description=f"PayPal {txn_type}",
            occurred_at=parse_iso_datetime(raw.get("TIMESTAMP")),
            metadata={"paypal_transaction_id": txn_id, "paypal_type": txn_type},
        )
