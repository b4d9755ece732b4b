"""Typed exception hierarchy for payment gateway errors.

Gateway errors are run-fatal: any of them aborts the current sync run.
Record-level problems use :class:`MissingIdentityError`, which only skips
the offending record.
"""


class GatewayError(Exception):
    """Base exception for all gateway-related errors.

    Carries the gateway id so callers can identify which gateway failed.
    """

    def __init__(self, message: str, gateway: str = ""):
        self.gateway = gateway
        super().__init__(message)


class GatewayConfigurationError(GatewayError):
    """Gateway disabled or missing required credentials."""

    pass


class GatewayAuthError(GatewayError):
    """Credentials rejected by the gateway (HTTP 401/403, NVP auth codes)."""

    pass


class GatewayConnectionError(GatewayError):
    """Network failures: timeouts, DNS resolution, connection refused.

    Retriable by default.
    """

    def __init__(self, message: str, gateway: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, gateway)


class GatewayAPIError(GatewayError):
    """HTTP 4xx/5xx responses or an unsuccessful gateway acknowledgement."""

    def __init__(
        self,
        message: str,
        gateway: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, gateway)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class GatewayDataError(GatewayError):
    """Malformed or unparseable response from the gateway."""

    pass


class MissingIdentityError(Exception):
    """A gateway record lacks the payer email needed to attach it to a contact."""

    def __init__(self, message: str = "Record has no payer email", record_id: str = ""):
        self.record_id = record_id
        super().__init__(message)


class UnknownGatewayError(ValueError):
    """The requested sync source or gateway id is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown gateway: {name}")
