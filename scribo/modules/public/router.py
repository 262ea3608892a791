from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from scribo.core.errors import InputError, NotFoundError
from scribo.core.rbac import require
from scribo.db.models.form import Form, FormField
from scribo.db.models.submission import Answer, Submission
from scribo.db.session import get_db
from scribo.modules.forms.router import serialize_form
from scribo.schemas.submission import PublicSubmitIn

logger = logging.getLogger("scribo.public")

router = APIRouter(prefix="/public/forms", tags=["public"])


def answer_text(value: Any) -> str:
    """Answers are stored as text; multi-choice values become one comma separated blob."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(answer_text(v) for v in value if answer_text(v))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _open_form(db: Session, form_id: int) -> Form:
    form = (
        db.query(Form)
        .options(selectinload(Form.fields).selectinload(FormField.field_type))
        .filter(Form.id == int(form_id))
        .first()
    )
    if form is None:
        raise NotFoundError("Form not found")
    require(form.deactivated_at is None, "This form no longer accepts submissions", 410)
    return form


@router.get("/{form_id}")
def public_form(form_id: int, db: Session = Depends(get_db)):
    return {"form": serialize_form(_open_form(db, form_id))}


@router.post("/{form_id}/submit", status_code=201)
def submit_form(form_id: int, body: PublicSubmitIn, db: Session = Depends(get_db)):
    form = _open_form(db, form_id)
    fields = {ff.id: ff for ff in form.fields}

    values: dict[int, str] = {}
    unknown: list[int] = []
    for a in body.answers:
        if a.field_id not in fields:
            unknown.append(a.field_id)
            continue
        values[a.field_id] = answer_text(a.value)
    if unknown:
        raise InputError("Unknown form fields", unknownFields=unknown)

    missing = [
        {"fieldId": ff.id, "label": ff.display_label, "message": ff.message}
        for ff in form.fields
        if ff.required and not ff.disabled and not values.get(ff.id)
    ]
    if missing:
        raise InputError("Required fields are missing", missingFields=missing)

    s = Submission(campaign_id=form.campaign_id)
    db.add(s)
    db.flush()
    # stored in form order
    for ff in form.fields:
        text = values.get(ff.id, "")
        if text:
            db.add(Answer(submission_id=s.id, form_field_id=ff.id, value=text))
    db.commit()
    logger.info("Form %s received submission %s", form.id, s.id)
    return {"message": form.success_message or "Submission received", "submissionId": s.id}
