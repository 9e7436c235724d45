"""Persistence for copy-coach audits and their recommendations and entities."""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import noload

from geocoach.database import get_session
from geocoach.models.audit import Audit, Entity, Recommendation
from geocoach.modules.copy_coach.schemas import AuditExtraction

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


def _score(value: float) -> int:
    return int(round(max(0.0, min(100.0, float(value)))))


def save_audit(
    url: str,
    scores: dict[str, float],
    summary: str = "",
    issues: Optional[list[str]] = None,
    recommendations: Optional[list[dict[str, Any]]] = None,
    entities: Optional[list[dict[str, str]]] = None,
) -> str:
    """Insert an audit with its recommendations and entities in one transaction.

    Args:
        url: Audited page URL.
        scores: ``who``, ``what``, ``where`` and ``entity`` scores (0-100).
        summary: Free-text summary.
        issues: Ordered issue descriptions.
        recommendations: Dicts with ``kind``, ``priority`` and ``sentence``.
        entities: Dicts with ``etype`` and ``value``.

    Returns:
        The new audit id.  Nothing is written if any row fails.
    """
    audit = Audit(
        url=url,
        score_who=_score(scores["who"]),
        score_what=_score(scores["what"]),
        score_where=_score(scores["where"]),
        entity_score=_score(scores["entity"]),
        summary=summary or "",
        issues=list(issues or []),
    )
    audit.recommendations = [
        Recommendation(kind=r["kind"], priority=int(r["priority"]), sentence=r["sentence"])
        for r in recommendations or []
    ]
    audit.entities = [
        Entity(etype=e["etype"], value=e["value"])
        for e in entities or []
    ]
    with get_session() as session:
        session.add(audit)
        session.flush()
        audit_id = audit.id

    logger.info(
        "Saved audit %s for %s (%d recommendations, %d entities)",
        audit_id, url, len(audit.recommendations), len(audit.entities),
    )
    return audit_id


def save_extraction(url: str, extraction: AuditExtraction) -> str:
    """Persist a validated model extraction for *url*."""
    return save_audit(
        url=url,
        scores=extraction.scores.model_dump(),
        summary=extraction.summary or "",
        issues=extraction.issues,
        recommendations=[
            {"kind": s.kind, "priority": s.priority, "sentence": s.text}
            for s in extraction.sentences
        ],
        entities=[e.model_dump() for e in extraction.extracted_entities],
    )


def get_audit(audit_id: str) -> Optional[dict[str, Any]]:
    """Return the audit with recommendations (ascending priority) and entities."""
    with get_session() as session:
        audit = session.get(Audit, audit_id)
        if audit is None:
            return None
        return audit.to_dict()


def list_audits(limit: int = HISTORY_LIMIT) -> list[dict[str, Any]]:
    """Return summary fields of the most recent audits, newest first."""
    with get_session() as session:
        rows = session.scalars(
            select(Audit)
            .options(noload(Audit.recommendations), noload(Audit.entities))
            .order_by(Audit.created_at.desc())
            .limit(limit)
        ).all()
        return [row.summary_dict() for row in rows]


def delete_audit(audit_id: str) -> bool:
    """Delete an audit; its recommendations and entities go with it."""
    with get_session() as session:
        audit = session.get(Audit, audit_id)
        if audit is None:
            return False
        session.delete(audit)
    logger.info("Deleted audit %s", audit_id)
    return True
