"""Credential store - resolves per-gateway settings into usable credentials."""

import logging
from typing import Any, Protocol

from integrations.gateway_protocol import GatewayCredential
from integrations.gateway_registry import gateway_for_source

logger = logging.getLogger(__name__)

# Settings every source needs besides ``enabled``. Stripe depends on mode
# and is handled separately.
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "paypal": ("client_id", "client_secret"),
    "paypal_nvp": ("api_username", "api_password", "api_signature"),
}

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


class SettingsReader(Protocol):
    """Anything that can return the raw settings blob for a gateway."""

    def get_settings(self, group: str) -> dict[str, Any]:
        ...


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def normalize_mode(value: Any) -> str:
    """Map a stored mode to ``"test"`` or ``"live"`` (``"sandbox"`` is test)."""
    mode = str(value or "test").strip().lower()
    if mode == "live":
        return "live"
    if mode not in ("test", "sandbox"):
        logger.warning("Unknown gateway mode %r, treating as test", value)
    return "test"


class CredentialStore:
    """Read-only view over gateway settings.

    Never fails on missing settings: absent keys read as empty strings and
    ``is_available`` reports False.
    """

    def __init__(self, reader: SettingsReader):
        self._reader = reader

    def get_credentials(self, gateway_id: str) -> GatewayCredential:
        raw = self._reader.get_settings(gateway_id) or {}
        fields = {
            key: "" if value is None else str(value)
            for key, value in raw.items()
            if key not in ("enabled", "mode")
        }
        return GatewayCredential(
            gateway_id=gateway_id,
            enabled=_is_truthy(raw.get("enabled")),
            mode=normalize_mode(raw.get("mode")),
            fields=fields,
        )

    def missing_fields(self, source: str) -> list[str]:
        """Explain why ``source`` cannot sync; empty when it can.

        Raises:
            UnknownGatewayError: If the source is not registered.
        """
        credential = self.get_credentials(gateway_for_source(source))
        missing = []
        if not credential.enabled:
            missing.append("gateway is disabled")

        if credential.gateway_id == "stripe":
            required: tuple[str, ...] = (
                "test_secret" if credential.is_test_mode else "live_secret",
            )
        else:
            required = REQUIRED_FIELDS.get(source, ())
        missing.extend(key for key in required if not credential.get(key).strip())
        return missing

    def is_source_available(self, source: str) -> bool:
        return not self.missing_fields(source)

    def is_available(self, gateway_id: str) -> bool:
        """True if the gateway's primary sync source can run.

        PayPal needs ``enabled`` plus the REST client id and secret; Stripe
        needs ``enabled`` plus the secret for the active mode.
        """
        return self.is_source_available(gateway_id)
