"""Keyring-backed credential storage for gateway secrets.

Provides a thin wrapper around the ``keyring`` library to store and
retrieve payment gateway credentials in the OS keychain.  The ``keyring``
import is lazy so the rest of the app works even if no keyring backend
is available.
"""

import logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "syncpoint-crm"

# Keychain entries per gateway. These mirror the ``config.Settings``
# fallbacks read by ``services.gateway_settings_service``.
GATEWAY_CREDENTIAL_KEYS: dict[str, tuple[str, ...]] = {
    "paypal": (
        "PAYPAL_CLIENT_ID",
        "PAYPAL_CLIENT_SECRET",
        "PAYPAL_API_USERNAME",
        "PAYPAL_API_PASSWORD",
        "PAYPAL_API_SIGNATURE",
    ),
    "stripe": (
        "STRIPE_TEST_SECRET",
        "STRIPE_LIVE_SECRET",
        "STRIPE_WEBHOOK_SECRET",
    ),
}

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    key for keys in GATEWAY_CREDENTIAL_KEYS.values() for key in keys
)


def get_credential(key: str) -> str | None:
    """Retrieve a credential from the keychain.

    Args:
        key: The credential name (e.g. ``"PAYPAL_CLIENT_ID"``).

    Returns:
        The credential value, or ``None`` if not found or keyring
        is unavailable.
    """
    try:
        import keyring
    except ImportError:
        return None

    try:
        return keyring.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store a credential in the keychain.

    Only keys listed in :data:`CREDENTIAL_KEYS` are accepted.

    Returns:
        ``True`` if stored successfully, ``False`` otherwise.
    """
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to store non-credential key: %s", key)
        return False
    if not value or not value.strip():
        logger.warning("Attempted to store empty value for %s", key)
        return False

    try:
        import keyring
    except ImportError:
        logger.warning("keyring is not installed, cannot store credentials")
        return False

    try:
        keyring.set_password(SERVICE_NAME, key, value)
        logger.info("Stored %s in keychain", key)
        return True
    except Exception:
        logger.warning("Failed to store %s in keychain", key, exc_info=True)
        return False


def delete_credential(key: str) -> bool:
    """Remove a credential from the keychain."""
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to delete non-credential key: %s", key)
        return False

    try:
        import keyring
    except ImportError:
        return False

    try:
        keyring.delete_password(SERVICE_NAME, key)
        logger.info("Deleted %s from keychain", key)
        return True
    except Exception:
        logger.debug("Failed to delete %s from keychain", key, exc_info=True)
        return False


def stored_keys(gateway_id: str) -> list[str]:
    """Names of the gateway's keychain entries that currently hold a value."""
    return [
        key for key in GATEWAY_CREDENTIAL_KEYS.get(gateway_id, ())
        if get_credential(key)
    ]
