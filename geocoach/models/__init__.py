"""SQLAlchemy ORM models: import every model so Base.metadata is populated."""

from geocoach.models.audit import (
    Audit,
    Recommendation,
    Entity,
)

__all__ = [
    "Audit",
    "Recommendation",
    "Entity",
]
