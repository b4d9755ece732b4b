"""Payment gateway integrations.

This package contains:
- Gateway protocol: Canonical record shape and client interface
- Gateway registry: Builds clients per sync source
- PayPal REST, PayPal NVP and Stripe clients
"""

from integrations.gateway_protocol import (
    GatewayClient,
    GatewayCredential,
    GatewayPage,
    GatewayTransaction,
    SyncWindow,
)
from integrations.gateway_registry import GatewayRegistry, get_gateway_registry

__all__ = [
    "GatewayClient",
    "GatewayCredential",
    "GatewayPage",
    "GatewayRegistry",
    "GatewayTransaction",
    "SyncWindow",
    "get_gateway_registry",
]
