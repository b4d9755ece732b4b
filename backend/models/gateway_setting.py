"""GatewaySetting model - operator-edited settings blob per gateway."""

from sqlalchemy import Column, DateTime, JSON, String

from database import Base
from models.utils import generate_uuid, utc_now


class GatewaySetting(Base):
    """Stores the settings blob for one gateway (enabled, mode, credentials)."""

    __tablename__ = "gateway_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    gateway_id = Column(String(20), unique=True, index=True, nullable=False)
    settings = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )
