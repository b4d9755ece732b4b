"""Shared parsing utilities for gateway clients.

Centralises the value parsing every gateway integration needs: gateway
timestamps (ISO 8601 variants and Unix epochs), money amounts and the
timestamp format gateways expect in query parameters.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

_CENT = Decimal("0.01")

# ISO 4217 currencies whose minor unit is the major unit (Stripe sends
# these amounts undivided).
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})


def parse_iso_datetime(value) -> datetime | None:
    """Parse an ISO 8601 string (or date/datetime object) to a UTC-aware datetime.

    Handles the formats produced by each gateway:
    - Z suffix (PayPal NVP: "2024-01-15T10:30:00Z")
    - +0000 no-colon offset (PayPal reporting: "2024-01-15T10:30:00+0000")
    - Standard ISO with colon offset ("2024-06-28T18:42:46+00:00")
    - Date-only strings ("2024-06-28", e.g. the ``first_txn_date`` setting)

    Returns:
        A timezone-aware datetime, or None if the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    value_str = str(value).strip()
    if not value_str:
        return None

    if value_str.endswith("Z"):
        value_str = value_str[:-1] + "+00:00"

    # "...+0000" -> "...+00:00"
    if (
        len(value_str) >= 5
        and value_str[-5] in ("+", "-")
        and value_str[-4:].isdigit()
    ):
        value_str = value_str[:-2] + ":" + value_str[-2:]

    try:
        dt = datetime.fromisoformat(value_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (ValueError, TypeError):
        pass

    try:
        d = date.fromisoformat(str(value).strip())
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def parse_unix_timestamp(value) -> datetime | None:
    """Parse a Unix epoch timestamp (Stripe ``created``) to a UTC-aware datetime."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, TypeError, OSError):
        return None


def parse_amount(value) -> Decimal | None:
    """Parse a gateway money string such as ``"25.99"`` into a 2-place Decimal.

    Returns:
        The amount rounded half-up to cents, or None if unparseable.
    """
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value).strip()).quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None


def minor_units_to_amount(value, currency: str) -> Decimal | None:
    """Convert an integer amount in minor units (cents) to major units.

    Zero-decimal currencies are returned undivided.
    """
    if value is None:
        return None
    try:
        minor = Decimal(int(value))
    except (ValueError, TypeError):
        return None
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return minor.quantize(_CENT)
    return (minor / 100).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_gateway_timestamp(dt: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
