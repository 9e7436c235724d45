"""Copy-coach audit SQLAlchemy models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from geocoach.database import Base

RECOMMENDATION_KINDS = ("who", "what", "where", "general")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive datetimes; they were stored as UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Audit(Base):
    """One homepage audit: four scores, a summary, and the blocking issues."""

    __tablename__ = "audits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    score_who: Mapped[int] = mapped_column(Integer, nullable=False)
    score_what: Mapped[int] = mapped_column(Integer, nullable=False)
    score_where: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_score: Mapped[int] = mapped_column(Integer, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    issues: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    recommendations: Mapped[list["Recommendation"]] = relationship(
        back_populates="audit",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by=lambda: [Recommendation.priority, Recommendation.id],
    )
    entities: Mapped[list["Entity"]] = relationship(
        back_populates="audit",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by=lambda: Entity.id,
    )

    def summary_dict(self) -> dict[str, Any]:
        """Fields shown in the audit history list."""
        return {
            "id": self.id,
            "url": self.url,
            "score_who": self.score_who,
            "score_what": self.score_what,
            "score_where": self.score_where,
            "entity_score": self.entity_score,
            "created_at": _isoformat(self.created_at),
        }

    def to_dict(self) -> dict[str, Any]:
        """Full audit with its recommendations and entities."""
        data = self.summary_dict()
        data["summary"] = self.summary or ""
        data["issues"] = list(self.issues or [])
        data["recommendations"] = [r.to_dict() for r in self.recommendations]
        data["entities"] = [e.to_dict() for e in self.entities]
        return data

    def __repr__(self) -> str:
        return f"<Audit id={self.id} url={self.url[:60]!r}>"


class Recommendation(Base):
    """A literal, quotable sentence suggested for the homepage."""

    __tablename__ = "recommendations"
    __table_args__ = (
        Index("idx_recommendations_audit_priority", "audit_id", "priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    audit_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("audits.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    sentence: Mapped[str] = mapped_column(Text, nullable=False)

    audit: Mapped["Audit"] = relationship(back_populates="recommendations")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "audit_id": self.audit_id,
            "kind": self.kind,
            "priority": self.priority,
            "sentence": self.sentence,
        }

    def __repr__(self) -> str:
        return f"<Recommendation id={self.id} kind={self.kind} p={self.priority}>"


class Entity(Base):
    """An entity (person, phone, city, service...) extracted from the page."""

    __tablename__ = "entities"
    __table_args__ = (
        Index("idx_entities_audit_etype", "audit_id", "etype"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    audit_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("audits.id", ondelete="CASCADE"), nullable=False
    )
    etype: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    audit: Mapped["Audit"] = relationship(back_populates="entities")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "audit_id": self.audit_id,
            "etype": self.etype,
            "value": self.value,
        }

    def __repr__(self) -> str:
        return f"<Entity id={self.id} etype={self.etype!r}>"
