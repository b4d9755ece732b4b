"""Exceptions raised by the CRM services.

Validation and persistence errors are record-level: the sync orchestrator
counts the record as skipped and moves on.
"""


class CRMValidationError(ValueError):
    """Input failed validation before reaching storage."""

    pass


class ContactValidationError(CRMValidationError):
    """A contact could not be created from the supplied data (e.g. bad email)."""

    pass


class TransactionValidationError(CRMValidationError):
    """A transaction failed validation (amount, currency, unknown contact)."""

    pass


class PersistenceError(Exception):
    """Storage rejected a write."""

    pass


class DuplicateTransactionError(PersistenceError):
    """The ledger already holds this ``(gateway, gateway_transaction_id)``."""

    def __init__(self, gateway: str, gateway_transaction_id: str):
        self.gateway = gateway
        self.gateway_transaction_id = gateway_transaction_id
        super().__init__(
            f"Transaction {gateway}:{gateway_transaction_id} already exists"
        )


class SyncAlreadyRunningError(Exception):
    """A sync run for this gateway is already in progress."""

    def __init__(self, gateway: str):
        self.gateway = gateway
        super().__init__(f"A {gateway} sync is already in progress")


class WebhookVerificationError(Exception):
    """Webhook signature missing, malformed, stale or not matching."""

    pass
