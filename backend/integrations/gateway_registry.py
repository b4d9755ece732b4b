"""Gateway registry for building sync clients.

The registry is responsible for:
- Knowing every sync source and the gateway id it records under
- Building a fresh client for a source from resolved credentials
"""

import importlib
import logging

from integrations.exceptions import GatewayConfigurationError, UnknownGatewayError
from integrations.gateway_protocol import GatewayClient
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

# Each tuple is (source_name, gateway_id, module_path, class_name).
# Adding a new gateway only requires appending one entry here.
SYNC_SOURCES: list[tuple[str, str, str, str]] = [
    ("paypal", "paypal", "integrations.paypal_client", "PayPalClient"),
    ("paypal_nvp", "paypal", "integrations.paypal_nvp_client", "PayPalNVPClient"),
    ("stripe", "stripe", "integrations.stripe_client", "StripeClient"),
    ("stripe_customers", "stripe", "integrations.stripe_client", "StripeCustomerClient"),
]

ALL_SOURCE_NAMES: list[str] = [name for name, _, _, _ in SYNC_SOURCES]
ALL_GATEWAY_IDS: list[str] = list(dict.fromkeys(gw for _, gw, _, _ in SYNC_SOURCES))


def gateway_for_source(source: str) -> str:
    """Return the gateway id a sync source records under.

    Raises:
        UnknownGatewayError: If the source is not registered.
    """
    for name, gateway_id, _, _ in SYNC_SOURCES:
        if name == source:
            return gateway_id
    raise UnknownGatewayError(source)


class GatewayRegistry:
    """Builds gateway clients from a credential store.

    Example:
        registry = GatewayRegistry(CredentialStore(reader))
        client = registry.build_client("stripe")
        page = client.fetch_page(client.default_window(now))
    """

    def __init__(self, credential_store, clock: Clock | None = None):
        """Initialize the registry.

        Args:
            credential_store: A ``services.credential_store.CredentialStore``.
            clock: Time source handed to every client.
        """
        self._store = credential_store
        self._clock = clock or SystemClock()

    @property
    def credential_store(self):
        return self._store

    def is_available(self, source: str) -> bool:
        """True if the source's gateway is enabled and fully configured."""
        gateway_for_source(source)
        return self._store.is_source_available(source)

    def build_client(self, source: str) -> GatewayClient:
        """Build a new client for ``source``.

        Raises:
            UnknownGatewayError: If the source is not registered.
            GatewayConfigurationError: If the gateway is disabled or
                missing credentials.
        """
        for name, gateway_id, module_path, class_name in SYNC_SOURCES:
            if name != source:
                continue
            missing = self._store.missing_fields(source)
            if missing:
                raise GatewayConfigurationError(
                    f"{source} is not available: {', '.join(missing)}",
                    gateway=gateway_id,
                )
            credential = self._store.get_credentials(gateway_id)
            module = importlib.import_module(module_path)
            cls = getattr(module, class_name)
            logger.debug("Building %s client (%s mode)", source, credential.mode)
            return cls(credential, clock=self._clock)
        raise UnknownGatewayError(source)


def get_gateway_registry(db, clock: Clock | None = None) -> GatewayRegistry:
    """Create a registry backed by the database gateway settings.

    This is a factory function; the registry reads settings afresh from
    ``db`` every time a client is built.
    """
    from services.credential_store import CredentialStore
    from services.gateway_settings_service import GatewaySettingsService

    return GatewayRegistry(CredentialStore(GatewaySettingsService(db)), clock=clock)
