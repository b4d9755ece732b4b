"""Gateway protocol definitions for payment gateway support.

This module defines the canonical record shape and the client interface
that every payment gateway (PayPal REST, PayPal NVP, Stripe) implements
so the sync orchestrator can stay gateway-agnostic.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol


@dataclass
class SyncWindow:
    """The time range (and page size) a sync run fetches."""

    start: datetime
    end: datetime
    page_size: int = 100


@dataclass
class GatewayPage:
    """One page of raw gateway records.

    ``next_cursor`` is opaque to the orchestrator; ``None`` means the
    gateway has no further pages for the window.
    """

    records: list[dict[str, Any]]
    next_cursor: Any = None


@dataclass
class GatewayTransaction:
    """Normalized transaction from any gateway.

    All gateway clients must map their records to this format.
    """

    gateway: str  # Ledger key, e.g. "paypal" or "stripe"
    gateway_transaction_id: str  # Gateway's unique id for the payment
    payer_email: str  # May be empty; the orchestrator skips those records
    amount: Decimal  # Major units, two decimal places
    currency: str  # ISO 4217, upper-case
    payer_name: str = ""
    description: str = ""
    occurred_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayContact:
    """A gateway customer record imported as a CRM contact."""

    gateway: str
    external_id: str
    email: str  # May be empty; such customers are skipped
    name: str = ""
    currency: str | None = None


class GatewayClient(Protocol):
    """Protocol that all gateway clients must implement.

    Clients are built per run from a resolved credential and are not
    shared across runs. A client whose ``record_kind`` class attribute is
    ``"contact"`` also provides ``map_contact(raw) -> GatewayContact | None``
    and its records are imported as contacts only.
    """

    @property
    def gateway_id(self) -> str:
        """Ledger key for records from this client (``"paypal"``, ``"stripe"``).

        Two clients may share a gateway id (PayPal REST and NVP); they then
        share deduplication and the running-sync gate.
        """
        ...

    @property
    def source_name(self) -> str:
        """Registry name of this client variant (``"paypal_nvp"``)."""
        ...

    def default_window(self, now: datetime) -> SyncWindow:
        """Return the window to fetch when the caller does not pass one."""
        ...

    def fetch_page(self, window: SyncWindow, cursor: Any = None) -> GatewayPage:
        """Fetch one page of raw records.

        Raises:
            GatewayError: Any subclass; the run fails.
        """
        ...

    def map_record(self, raw: dict[str, Any]) -> GatewayTransaction | None:
        """Map a raw record to the canonical shape.

        Returns ``None`` for records that should be skipped (not a
        completed payment, wrong type, negative amount).

        Raises:
            MissingIdentityError: The record carries no id.
        """
        ...

    def close(self) -> None:
        """Release HTTP resources."""
        ...


@dataclass(frozen=True)
class GatewayCredential:
    """Resolved settings for one gateway.

    ``fields`` holds every setting other than ``enabled`` and ``mode`` as a
    string; absent keys read as ``""``.
    """

    gateway_id: str
    enabled: bool = False
    mode: str = "test"  # "test" | "live"
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str:
        return self.fields.get(key) or ""

    @property
    def is_test_mode(self) -> bool:
        return self.mode != "live"
