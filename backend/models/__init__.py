"""SQLAlchemy ORM models."""

from .contact import Contact
from .gateway_setting import GatewaySetting
from .id_sequence import IdSequence
from .sync_run import SyncRun
from .transaction import Transaction
from .utils import generate_uuid

__all__ = ["Contact", "GatewaySetting", "IdSequence", "SyncRun", "Transaction", "generate_uuid"]
