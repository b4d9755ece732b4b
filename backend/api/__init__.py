"""API route handlers."""
from . import gateways, sync, transactions, webhooks

__all__ = ["gateways", "sync", "transactions", "webhooks"]
