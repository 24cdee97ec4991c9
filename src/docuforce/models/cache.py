"""CacheRecord ORM model: one reviewer verdict per content fingerprint."""

from sqlalchemy import JSON, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docuforce.constants import CACHE_TABLE, HASH_HEX_LENGTH
from docuforce.models.base import Base


class CacheRecord(Base):
    __tablename__ = CACHE_TABLE

    hash: Mapped[str] = mapped_column(
        String(HASH_HEX_LENGTH), primary_key=True
    )
    name: Mapped[str] = mapped_column(Text)
    confidence: Mapped[float] = mapped_column(Float)
    errors: Mapped[list[str]] = mapped_column(JSON, default=list)
    warnings: Mapped[list[str]] = mapped_column(JSON, default=list)
