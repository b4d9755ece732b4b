"""IdSequence model - counters behind human-readable identifiers."""

from sqlalchemy import Column, Integer, String

from database import Base


class IdSequence(Base):
    """A named counter, e.g. ``"transaction-2024"``."""

    __tablename__ = "id_sequences"

    name = Column(String(50), primary_key=True)
    next_value = Column(Integer, nullable=False, default=1)
