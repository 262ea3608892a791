from __future__ import annotations

import logging
import os
import smtplib
from datetime import date, datetime
from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from scribo.auth.deps import get_current_client
from scribo.core.errors import InputError, NotFoundError
from scribo.db.session import get_db
from scribo.modules.submissions import service
from scribo.schemas.activity import AppointmentIn, CallIn, EmailIn, NoteIn, TaskIn
from scribo.schemas.submission import CriteriaIn, ExportIn, SearchIn
from scribo.utils.exporter import FORMATS
from scribo.utils.mailer import mail_enabled, send_mail
from scribo.utils.storage import export_path

logger = logging.getLogger("scribo.submissions")

router = APIRouter(prefix="/client/submissions", tags=["submissions"])

ACTIVITY_SCHEMAS = {
    "notes": NoteIn,
    "emails": EmailIn,
    "calls": CallIn,
    "tasks": TaskIn,
    "appointments": AppointmentIn,
}


@router.get("/campaign/{campaign_id}")
def list_submissions(
    campaign_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    order: Literal["asc", "desc"] = "desc",
    search: list[str] = Query([]),
    search_field_id: Optional[int] = Query(None, alias="searchFieldId"),
    favorite: Optional[bool] = None,
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    since_last_export: bool = Query(False, alias="sinceLastExport"),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    criteria = CriteriaIn(
        search=search,
        search_field_id=search_field_id,
        favorite=favorite,
        date_from=date_from,
        date_to=date_to,
        since_last_export=since_last_export,
    ).to_criteria()
    return service.search_submissions(db, client.id, campaign_id, criteria, page=page, limit=limit, order=order)


@router.post("/campaign/{campaign_id}/search")
def search_submissions(
    campaign_id: int,
    body: Optional[SearchIn] = None,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    body = body or SearchIn()
    return service.search_submissions(
        db, client.id, campaign_id, body.to_criteria(), page=body.page, limit=body.limit, order=body.order
    )


@router.post("/campaign/{campaign_id}/export")
def export_submissions(
    campaign_id: int,
    body: Optional[ExportIn] = None,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    body = body or ExportIn()
    return service.export_submissions(
        db,
        client.id,
        campaign_id,
        body.to_criteria(),
        format_name=body.format,
        delimiter=body.delimiter,
        field_ids=body.fields,
        order=body.order,
    )


@router.get("/campaign/{campaign_id}/exports")
def list_exports(campaign_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    return {"data": service.list_exports(db, client.id, campaign_id)}


@router.get("/exports/{export_id}/download")
def download_export(export_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    e = service.get_export_for_actor(db, client.id, export_id)
    path = export_path(e.file)
    if not os.path.isfile(path):
        raise NotFoundError("Export file is no longer available")
    fmt = FORMATS.get(e.format)
    media_type = fmt.media_type if fmt else "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=e.file)


@router.get("/{submission_id}")
def submission_detail(submission_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    return service.get_submission_detail(db, client.id, submission_id)


@router.post("/{submission_id}/favorite")
def toggle_favorite(submission_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    return service.toggle_favorite(db, client.id, submission_id)


@router.delete("/{submission_id}")
def delete_submission(submission_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    return service.soft_delete(db, client.id, submission_id)


def _activity_schema(kind: str):
    schema = ACTIVITY_SCHEMAS.get((kind or "").strip().lower())
    if schema is None:
        raise NotFoundError(f"Unknown activity kind: {kind}")
    return schema


def _activity_values(kind: str, payload: dict) -> dict:
    schema = _activity_schema(kind)
    try:
        data = schema.model_validate(payload or {})
    except ValidationError as exc:
        raise InputError("Invalid activity payload", errors=exc.errors(include_url=False, include_context=False))
    values = data.model_dump()
    if kind == "notes":
        values = {"content": values.pop("note")}
    values.pop("send", None)
    return values


def _deliver_email(email, want_send: bool) -> None:
    if not want_send or not mail_enabled():
        return
    try:
        send_mail(email.recipient, email.subject, email.body)
    except (smtplib.SMTPException, OSError):
        # the activity is still recorded, with its delivery status
        logger.exception("Sending email activity %s failed", email.id)
        email.status = "failed"
        return
    email.status = "sent"
    email.sent_at = datetime.utcnow()


@router.get("/{submission_id}/{kind}")
def list_activities(submission_id: int, kind: str, db: Session = Depends(get_db), client=Depends(get_current_client)):
    _activity_schema(kind)
    return {"data": service.list_activities(db, client.id, submission_id, kind)}


@router.post("/{submission_id}/{kind}", status_code=201)
def add_activity(
    submission_id: int,
    kind: str,
    payload: Optional[dict] = Body(None),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    payload = payload or {}
    kind = kind.strip().lower()
    values = _activity_values(kind, payload)
    row = service.add_activity(db, client.id, submission_id, kind, values)
    if kind == "emails":
        _deliver_email(row, bool(payload.get("send", True)))
    db.commit()
    db.refresh(row)
    return service.serialize_activity(row)


@router.delete("/{submission_id}/{kind}/{activity_id}")
def delete_activity(
    submission_id: int,
    kind: str,
    activity_id: int,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    return service.delete_activity(db, client.id, submission_id, kind.strip().lower(), activity_id)
