"""Audit trail for campaign, form, submission and export changes."""

from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from scribo.db.models.audit_log import AuditLog
from scribo.db.models.client import Client


def _to_json(v: Any) -> str:
    if v is None:
        return ""
    try:
        return json.dumps(v, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(v)


def _from_json(raw: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def add_audit_log(
    db: Session,
    *,
    actor_id: int,
    action: str,
    entity: str,
    entity_id: int,
    campaign_id: int | None = None,
    before: Any = None,
    after: Any = None,
    comment: str = "",
) -> AuditLog:
    """Stage an audit row in the caller's transaction; nothing is committed here."""
    row = AuditLog(
        actor_id=int(actor_id),
        campaign_id=int(campaign_id) if campaign_id is not None else None,
        action=(action or "").strip().lower(),
        entity=(entity or "").strip().lower(),
        entity_id=int(entity_id),
        before_json=_to_json(before),
        after_json=_to_json(after),
        comment=(comment or "").strip(),
    )
    db.add(row)
    return row


def serialize_audit_log(row: AuditLog, actor: Optional[Client] = None) -> dict:
    return {
        "id": row.id,
        "action": row.action,
        "entity": row.entity,
        "entityId": row.entity_id,
        "actorId": row.actor_id,
        "actorName": actor.full_name if actor else None,
        "before": _from_json(row.before_json),
        "after": _from_json(row.after_json),
        "comment": row.comment,
        "createdAt": row.created_at.isoformat() if row.created_at else None,
    }


def list_audit_logs(
    db: Session,
    campaign_id: int,
    *,
    entity: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 200,
) -> list[dict]:
    q = (
        db.query(AuditLog, Client)
        .outerjoin(Client, Client.id == AuditLog.actor_id)
        .filter(AuditLog.campaign_id == int(campaign_id))
    )
    if entity:
        q = q.filter(AuditLog.entity == entity.strip().lower())
    if action:
        q = q.filter(AuditLog.action == action.strip().lower())
    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(int(limit)).all()
    return [serialize_audit_log(log, actor) for log, actor in rows]
