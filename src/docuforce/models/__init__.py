"""SQLAlchemy ORM models."""

from docuforce.models.base import Base
from docuforce.models.cache import CacheRecord

__all__ = [
    "Base",
    "CacheRecord",
]
