from __future__ import annotations

from collections import OrderedDict
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from scribo.auth.deps import get_current_client
from scribo.core.errors import NotFoundError
from scribo.core.rbac import accessible_campaigns_clause, get_campaign_for_actor, require
from scribo.db.models.campaign import Campaign
from scribo.db.models.field_type import FieldType
from scribo.db.models.form import Form, FormField
from scribo.db.models.model_form import ModelForm
from scribo.db.models.submission import Answer
from scribo.db.session import get_db
from scribo.schemas.form import FormFieldCreate, FormFieldUpdate, FormUpdate
from scribo.utils.audit import add_audit_log
from scribo.utils.form_builder import (
    CHOICE_TYPES,
    default_error_message,
    default_options,
    placeholder_for,
    slugify,
)

router = APIRouter(prefix="/client/forms", tags=["forms"])


def serialize_field_type(ft: FieldType) -> dict:
    return {"id": ft.id, "fieldName": ft.field_name, "icon": ft.icon, "type": ft.type}


def serialize_field(ff: FormField) -> dict:
    return {
        "id": ff.id,
        "fieldTypeId": ff.field_type_id,
        "label": ff.label,
        "name": ff.name,
        "type": ff.type,
        "required": bool(ff.required),
        "disabled": bool(ff.disabled),
        "ordre": ff.ordre,
        "placeholder": ff.placeholder,
        "message": ff.message,
        "options": ff.options,
        "fieldType": serialize_field_type(ff.field_type) if ff.field_type else None,
    }


def serialize_form(form: Form) -> dict:
    return {
        "id": form.id,
        "campaignId": form.campaign_id,
        "title": form.title,
        "description": form.description,
        "coverColor": form.cover_color,
        "coverImage": form.cover_image,
        "mode": form.mode,
        "successMessage": form.success_message,
        "deactivatedAt": form.deactivated_at.isoformat() if form.deactivated_at else None,
        "fields": [serialize_field(ff) for ff in form.fields],
    }


def _form_of_campaign(db: Session, actor_id: int, campaign_id: int) -> Form:
    campaign = get_campaign_for_actor(db, actor_id, campaign_id)
    form = (
        db.query(Form)
        .options(selectinload(Form.fields).selectinload(FormField.field_type))
        .filter(Form.campaign_id == campaign.id)
        .first()
    )
    if form is None:
        raise NotFoundError("Form not found")
    return form


def _field_for_actor(db: Session, actor_id: int, field_id: int) -> FormField:
    ff = (
        db.query(FormField)
        .join(Form, Form.id == FormField.form_id)
        .join(Campaign, Campaign.id == Form.campaign_id)
        .filter(FormField.id == int(field_id), accessible_campaigns_clause(actor_id))
        .first()
    )
    if ff is None:
        raise NotFoundError("Form field not found or access denied")
    return ff


def _renumber(fields: list[FormField]) -> None:
    for i, ff in enumerate(fields, start=1):
        ff.ordre = i


@router.get("/fields")
def field_catalog(db: Session = Depends(get_db), client=Depends(get_current_client)):
    rows = db.query(FieldType).order_by(FieldType.id.asc()).all()
    return {"data": [serialize_field_type(ft) for ft in rows]}


@router.get("/models")
def model_forms(db: Session = Depends(get_db), client=Depends(get_current_client)):
    rows = (
        db.query(ModelForm)
        .options(selectinload(ModelForm.category))
        .order_by(ModelForm.category_id.asc(), ModelForm.id.asc())
        .all()
    )
    groups: OrderedDict[str, dict] = OrderedDict()
    for m in rows:
        name = m.category.name if m.category else ""
        g = groups.setdefault(name, {"categoryId": m.category_id, "categoryName": name, "count": 0, "models": []})
        g["models"].append({"id": m.id, "title": m.title, "coverImage": m.cover_image, "coverColor": m.cover_color})
        g["count"] = len(g["models"])
    return {"data": list(groups.values())}


@router.get("/campaign/{campaign_id}")
def campaign_form(campaign_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    return {"data": serialize_form(_form_of_campaign(db, client.id, campaign_id))}


@router.patch("/campaign/{campaign_id}")
def update_form(
    campaign_id: int,
    body: FormUpdate,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    form = _form_of_campaign(db, client.id, campaign_id)
    before = {k: v for k, v in serialize_form(form).items() if k != "fields"}

    changes = body.model_dump(exclude_unset=True, exclude={"is_deactivated", "deactivated_at"})
    for key, value in changes.items():
        if value is None:
            continue
        setattr(form, key, value.strip() if isinstance(value, str) else value)
    if body.is_deactivated is not None:
        form.deactivated_at = datetime.utcnow() if body.is_deactivated else None
    elif "deactivated_at" in body.model_fields_set:
        form.deactivated_at = body.deactivated_at

    after = {k: v for k, v in serialize_form(form).items() if k != "fields"}
    add_audit_log(
        db, actor_id=client.id, campaign_id=form.campaign_id, action="update", entity="form",
        entity_id=form.id, before=before, after=after,
    )
    db.commit()
    return {"message": "Form updated", "data": serialize_form(form)}


@router.post("/campaign/{campaign_id}/fields", status_code=201)
def add_field(
    campaign_id: int,
    body: FormFieldCreate,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    form = _form_of_campaign(db, client.id, campaign_id)
    ft = db.get(FieldType, body.field_type_id)
    require(ft is not None, "Invalid field type", 400)

    ordre = len(form.fields) + 1
    same_type = sum(1 for f in form.fields if f.field_type_id == ft.id)
    label = (body.label or "").strip() or f"{ft.field_name} {same_type + 1}"
    ff = FormField(
        form_id=form.id,
        field_type_id=ft.id,
        label=label,
        name=(body.name or "").strip() or f"field_{ft.type}_{slugify(label)}_{ordre}",
        required=False,
        ordre=ordre,
        placeholder=placeholder_for(ft.type, label),
        message=default_error_message(ft.type, label, False),
    )
    ff.options = default_options() if ft.type in CHOICE_TYPES else []
    db.add(ff)
    db.flush()
    add_audit_log(
        db, actor_id=client.id, campaign_id=form.campaign_id, action="create", entity="form_field",
        entity_id=ff.id, after={"label": ff.label, "type": ft.type, "ordre": ff.ordre},
    )
    db.commit()
    db.refresh(ff)
    return {"message": "Field added", "data": serialize_field(ff)}


@router.patch("/fields/{field_id}")
def update_field(
    field_id: int,
    body: FormFieldUpdate,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    ff = _field_for_actor(db, client.id, field_id)
    before = serialize_field(ff)

    changes = body.model_dump(exclude_unset=True, exclude={"options", "ordre"})
    for key, value in changes.items():
        if value is None:
            continue
        setattr(ff, key, value.strip() if isinstance(value, str) else value)

    if body.options is not None:
        options = [o.model_dump() for o in body.options if o.content.strip()]
        if ff.type in CHOICE_TYPES:
            require(len(options) > 0, "A choice field needs at least one option", 400)
        ff.options = sorted(options, key=lambda o: o["ordre"])

    if body.ordre is not None and body.ordre != ff.ordre:
        siblings = [f for f in ff.form.fields if f.id != ff.id]
        pos = min(body.ordre, len(siblings) + 1) - 1
        siblings.insert(pos, ff)
        _renumber(siblings)

    add_audit_log(
        db, actor_id=client.id, campaign_id=ff.form.campaign_id, action="update", entity="form_field",
        entity_id=ff.id, before=before, after=serialize_field(ff),
    )
    db.commit()
    db.refresh(ff)
    return {"message": "Field updated", "data": serialize_field(ff)}


@router.delete("/fields/{field_id}")
def delete_field(field_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    ff = _field_for_actor(db, client.id, field_id)
    form = ff.form
    before = serialize_field(ff)

    db.query(Answer).filter(Answer.form_field_id == ff.id).delete(synchronize_session=False)
    form.fields.remove(ff)
    _renumber(form.fields)
    add_audit_log(
        db, actor_id=client.id, campaign_id=form.campaign_id, action="delete", entity="form_field",
        entity_id=int(field_id), before=before,
    )
    db.commit()
    return {"message": "Field deleted", "id": int(field_id)}
