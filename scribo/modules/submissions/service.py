"""Submission queries and the export pipeline.

Every function takes the acting client id explicitly; campaign access is
checked here, not in the routers.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from scribo.core.errors import InputError, NotFoundError
from scribo.core.rbac import get_campaign_for_actor, get_submission_for_actor
from scribo.db.models.activity import Appointment, Call, Email, Note, Task
from scribo.db.models.export_history import ExportHistory
from scribo.db.models.field_type import FieldType
from scribo.db.models.form import Form, FormField
from scribo.db.models.submission import Answer, Submission
from scribo.utils.audit import add_audit_log
from scribo.utils.exporter import export_filename, get_format, render, shape_rows
from scribo.utils.locks import campaign_export_lock
from scribo.utils.storage import remove_export, write_export
from scribo.utils.submission_filters import (
    SubmissionCriteria,
    SubmissionFilter,
    build_submission_filter,
    order_by,
)

logger = logging.getLogger("scribo.submissions")

ACTIVITY_MODELS = {
    "notes": Note,
    "emails": Email,
    "calls": Call,
    "tasks": Task,
    "appointments": Appointment,
}


def resolve_field_types(db: Session, campaign_id: int, field_ids: Iterable[int]) -> dict[int, str]:
    """{form field id: type} for the given ids that belong to the campaign's form."""
    ids = sorted({int(x) for x in field_ids})
    if not ids:
        return {}
    rows = (
        db.query(FormField.id, FieldType.type)
        .join(Form, Form.id == FormField.form_id)
        .join(FieldType, FieldType.id == FormField.field_type_id)
        .filter(Form.campaign_id == int(campaign_id), FormField.id.in_(ids))
        .all()
    )
    return {fid: ftype for fid, ftype in rows}


def last_watermark(db: Session, campaign_id: int) -> Optional[int]:
    last = (
        db.query(ExportHistory)
        .filter(ExportHistory.campaign_id == int(campaign_id))
        .order_by(ExportHistory.id.desc())
        .first()
    )
    return last.last_submission_id if last else None


def build_filter(db: Session, campaign_id: int, criteria: SubmissionCriteria) -> SubmissionFilter:
    field_types = resolve_field_types(db, campaign_id, criteria.referenced_field_ids())
    watermark = last_watermark(db, campaign_id) if criteria.since_last_export else None
    return build_submission_filter(campaign_id, criteria, field_types=field_types, last_export_id=watermark)


def _with_answers(query):
    return query.options(
        selectinload(Submission.answers).selectinload(Answer.form_field).selectinload(FormField.field_type)
    )


def format_answer_value(field_type: str, value: str) -> Any:
    """Typed view of a stored answer for listings; exports keep the raw text."""
    raw = value or ""
    if field_type == "boolean":
        return raw.strip().lower() in ("true", "1", "oui", "yes", "vrai")
    if field_type == "number":
        try:
            return float(raw) if raw.strip() else None
        except ValueError:
            return raw
    return raw


def serialize_submission(s: Submission) -> dict:
    answers = []
    for a in s.answers:
        ff = a.form_field
        ftype = ff.type if ff else "text"
        answers.append({
            "id": a.id,
            "fieldId": a.form_field_id,
            "fieldLabel": ff.display_label if ff else f"field#{a.form_field_id}",
            "fieldType": ftype,
            "value": format_answer_value(ftype, a.value),
        })
    return {
        "id": s.id,
        "favorite": bool(s.favorite),
        "createdAt": s.created_at.isoformat() if s.created_at else None,
        "updatedAt": s.updated_at.isoformat() if s.updated_at else None,
        "answers": answers,
    }


def search_submissions(
    db: Session,
    actor_id: int,
    campaign_id: int,
    criteria: SubmissionCriteria,
    *,
    page: int = 1,
    limit: int = 10,
    order: str = "desc",
) -> dict:
    campaign = get_campaign_for_actor(db, actor_id, campaign_id)
    f = build_filter(db, campaign.id, criteria)

    page = max(int(page), 1)
    limit = max(int(limit), 1)
    total = f.apply(db.query(Submission.id)).count()
    items = (
        _with_answers(f.apply(db.query(Submission)))
        .order_by(*order_by(order))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [serialize_submission(s) for s in items],
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if total else 0,
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


def export_submissions(
    db: Session,
    actor_id: int,
    campaign_id: int,
    criteria: SubmissionCriteria,
    *,
    format_name: str = "csv",
    delimiter: Optional[str] = None,
    field_ids: Optional[list[int]] = None,
    order: str = "desc",
) -> dict:
    """Filter, render and persist one export, then advance the campaign watermark.

    Reading the previous watermark and appending the new one happen under the
    campaign export lock and a row lock on the campaign, so two concurrent
    "since last export" requests cannot both export the same submissions.
    """
    fmt = get_format(format_name)
    wanted = [int(x) for x in field_ids] if field_ids else None

    # only campaigns visible to the actor are ever locked
    campaign = get_campaign_for_actor(db, actor_id, campaign_id)

    with campaign_export_lock(campaign.id):
        campaign = get_campaign_for_actor(db, actor_id, campaign.id, for_update=True)
        if wanted:
            known = resolve_field_types(db, campaign.id, wanted)
            missing = [fid for fid in wanted if fid not in known]
            if missing:
                raise NotFoundError("Form field not found", field_ids=missing)

        f = build_filter(db, campaign.id, criteria)
        subs = _with_answers(f.apply(db.query(Submission))).order_by(*order_by(order)).all()
        if not subs:
            raise InputError("No submissions match the export criteria")

        rows = shape_rows(subs, wanted)
        form_fields = campaign.form.fields if campaign.form is not None else []
        columns = wanted
        if columns is None and fmt.name == "xlsx":
            # spreadsheet columns follow the form layout
            seen = {a["fieldId"] for r in rows for a in r["answers"]}
            columns = [ff.id for ff in form_fields if ff.id in seen]
        labels = {ff.id: ff.display_label for ff in form_fields}
        data = render(rows, fmt, delimiter=delimiter, field_ids=columns, labels=labels)
        ref = write_export(export_filename(campaign.id, fmt), data)

        try:
            entry = ExportHistory(
                campaign_id=campaign.id,
                created_by_id=int(actor_id),
                file=ref,
                format=fmt.name,
                row_count=len(subs),
                last_submission_id=max(s.id for s in subs),
            )
            db.add(entry)
            db.flush()
            add_audit_log(
                db,
                actor_id=actor_id,
                campaign_id=campaign.id,
                action="export",
                entity="export",
                entity_id=entry.id,
                after={"file": ref, "format": fmt.name, "count": len(subs), "watermark": entry.last_submission_id},
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            remove_export(ref)
            raise

    logger.info("Campaign %s exported %d submissions as %s (%s)", campaign_id, len(subs), fmt.name, ref)
    return {
        "message": "Export completed",
        "file": ref,
        "count": len(subs),
        "format": fmt.name,
        "exportId": entry.id,
    }


def serialize_export(e: ExportHistory) -> dict:
    return {
        "id": e.id,
        "campaignId": e.campaign_id,
        "file": e.file,
        "format": e.format,
        "count": e.row_count,
        "lastSubmissionId": e.last_submission_id,
        "createdById": e.created_by_id,
        "createdAt": e.created_at.isoformat() if e.created_at else None,
    }


def list_exports(db: Session, actor_id: int, campaign_id: int) -> list[dict]:
    campaign = get_campaign_for_actor(db, actor_id, campaign_id)
    rows = (
        db.query(ExportHistory)
        .filter(ExportHistory.campaign_id == campaign.id)
        .order_by(ExportHistory.id.desc())
        .all()
    )
    return [serialize_export(e) for e in rows]


def get_export_for_actor(db: Session, actor_id: int, export_id: int) -> ExportHistory:
    e = db.get(ExportHistory, int(export_id))
    if e is None:
        raise NotFoundError("Export not found")
    get_campaign_for_actor(db, actor_id, e.campaign_id)
    return e


# ---------------------------------------------------------------------------
# Single submission
# ---------------------------------------------------------------------------


def _activity_counts(db: Session, submission_id: int) -> dict[str, int]:
    return {
        kind: db.query(model).filter(model.submission_id == int(submission_id)).count()
        for kind, model in ACTIVITY_MODELS.items()
    }


def get_submission_detail(db: Session, actor_id: int, submission_id: int) -> dict:
    s = get_submission_for_actor(db, actor_id, submission_id)
    out = serialize_submission(s)
    out["campaignId"] = s.campaign_id
    # detail view shows the stored text as-is
    out["answers"] = [
        {**a, "value": ans.value or ""} for a, ans in zip(out["answers"], s.answers)
    ]
    out["activities"] = {
        kind: [serialize_activity(x) for x in list_activity_rows(db, s.id, kind)]
        for kind in ACTIVITY_MODELS
    }
    out["activitiesCount"] = _activity_counts(db, s.id)
    return out


def toggle_favorite(db: Session, actor_id: int, submission_id: int) -> dict:
    s = get_submission_for_actor(db, actor_id, submission_id)
    before = bool(s.favorite)
    s.favorite = not before
    add_audit_log(
        db, actor_id=actor_id, campaign_id=s.campaign_id, action="update", entity="submission",
        entity_id=s.id, before={"favorite": before}, after={"favorite": s.favorite},
    )
    db.commit()
    return {"id": s.id, "favorite": s.favorite}


def soft_delete(db: Session, actor_id: int, submission_id: int) -> dict:
    s = get_submission_for_actor(db, actor_id, submission_id)
    s.deleted_at = datetime.utcnow()
    add_audit_log(
        db, actor_id=actor_id, campaign_id=s.campaign_id, action="delete", entity="submission", entity_id=s.id,
    )
    db.commit()
    logger.info("Submission %s soft-deleted by client %s", s.id, actor_id)
    return {"message": "Submission deleted", "id": s.id}


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


def activity_model(kind: str):
    model = ACTIVITY_MODELS.get((kind or "").strip().lower())
    if model is None:
        raise NotFoundError(f"Unknown activity kind: {kind}")
    return model


def list_activity_rows(db: Session, submission_id: int, kind: str) -> list:
    model = activity_model(kind)
    return (
        db.query(model)
        .filter(model.submission_id == int(submission_id))
        .order_by(model.created_at.desc(), model.id.desc())
        .all()
    )


def serialize_activity(a) -> dict:
    out: dict[str, Any] = {}
    for col in a.__table__.columns:
        v = getattr(a, col.key)
        out[_camel(col.key)] = v.isoformat() if isinstance(v, datetime) else v
    return out


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def list_activities(db: Session, actor_id: int, submission_id: int, kind: str) -> list[dict]:
    s = get_submission_for_actor(db, actor_id, submission_id)
    return [serialize_activity(a) for a in list_activity_rows(db, s.id, kind)]


def add_activity(db: Session, actor_id: int, submission_id: int, kind: str, values: dict):
    """Attach an activity to a submission; the caller commits."""
    model = activity_model(kind)
    s = get_submission_for_actor(db, actor_id, submission_id)
    row = model(campaign_id=s.campaign_id, submission_id=s.id, created_by_id=int(actor_id), **values)
    db.add(row)
    db.flush()
    add_audit_log(
        db, actor_id=actor_id, campaign_id=s.campaign_id, action="create", entity=kind.rstrip("s"),
        entity_id=row.id, after=serialize_activity(row),
    )
    return row


def delete_activity(db: Session, actor_id: int, submission_id: int, kind: str, activity_id: int) -> dict:
    model = activity_model(kind)
    s = get_submission_for_actor(db, actor_id, submission_id)
    row = (
        db.query(model)
        .filter(model.id == int(activity_id), model.submission_id == s.id)
        .first()
    )
    if row is None:
        raise NotFoundError("Activity not found")
    before = serialize_activity(row)
    db.delete(row)
    add_audit_log(
        db, actor_id=actor_id, campaign_id=s.campaign_id, action="delete", entity=kind.rstrip("s"),
        entity_id=int(activity_id), before=before,
    )
    db.commit()
    return {"message": "Activity deleted", "id": int(activity_id)}
