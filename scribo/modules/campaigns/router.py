from __future__ import annotations

import logging
import math
from collections import OrderedDict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form as FormParam, Query, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from scribo.auth.deps import get_current_client
from scribo.core.errors import InputError, NotFoundError
from scribo.core.rbac import accessible_campaigns_clause, get_campaign_for_actor, is_owner, require
from scribo.db.models.campaign import Campaign
from scribo.db.models.field_type import FieldType
from scribo.db.models.form import Form, FormField
from scribo.db.models.model_form import ModelForm
from scribo.db.models.submission import Answer, Submission
from scribo.db.session import get_db
from scribo.modules.submissions.service import ACTIVITY_MODELS
from scribo.schemas.campaign import CampaignCreate, CampaignFromModel, CampaignUpdate
from scribo.utils.audit import add_audit_log, list_audit_logs
from scribo.utils.field_analyzer import analyze_grid
from scribo.utils.form_builder import (
    FieldCount,
    extract_field_counts,
    fields_from_analysis,
    fields_from_counts,
)
from scribo.utils.spreadsheet import load_grid
from scribo.utils.storage import read_upload

logger = logging.getLogger("scribo.campaigns")

router = APIRouter(prefix="/client/campaigns", tags=["campaigns"])


def _snapshot(c: Campaign) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "status": c.status,
        "favorite": bool(c.favorite),
    }


def _campaign_name(value: str) -> str:
    name = (value or "").strip()
    require(len(name) >= 3, "Campaign name must contain at least 3 characters", 400)
    return name


def _submission_counts(db: Session, ids: list[int]) -> dict[int, int]:
    if not ids:
        return {}
    rows = (
        db.query(Submission.campaign_id, func.count(Submission.id))
        .filter(Submission.campaign_id.in_(ids), Submission.deleted_at.is_(None))
        .group_by(Submission.campaign_id)
        .all()
    )
    return dict(rows)


def _activity_counts(db: Session, ids: list[int]) -> dict[int, int]:
    out: dict[int, int] = {}
    if not ids:
        return out
    for model in ACTIVITY_MODELS.values():
        rows = (
            db.query(model.campaign_id, func.count(model.id))
            .filter(model.campaign_id.in_(ids))
            .group_by(model.campaign_id)
            .all()
        )
        for cid, n in rows:
            out[cid] = out.get(cid, 0) + n
    return out


def _create_campaign(db: Session, actor_id: int, name: str, **form_values) -> tuple[Campaign, Form]:
    campaign = Campaign(client_id=int(actor_id), name=name)
    db.add(campaign)
    db.flush()
    form = Form(campaign_id=campaign.id, **form_values)
    db.add(form)
    db.flush()
    return campaign, form


def _finish_creation(db: Session, actor_id: int, campaign: Campaign, fields: list[FormField], source: str) -> None:
    db.add_all(fields)
    db.flush()
    add_audit_log(
        db,
        actor_id=actor_id,
        campaign_id=campaign.id,
        action="create",
        entity="campaign",
        entity_id=campaign.id,
        after={**_snapshot(campaign), "fields": len(fields), "source": source},
    )
    db.commit()
    logger.info("Campaign %s created by client %s from %s (%d fields)", campaign.id, actor_id, source, len(fields))


async def _read_grid(file: UploadFile):
    data = await read_upload(file)
    return await run_in_threadpool(load_grid, data, file.filename or "", file.content_type or "")


@router.get("")
def list_campaigns(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    q = db.query(Campaign).filter(accessible_campaigns_clause(client.id))
    total = q.count()
    campaigns = q.order_by(Campaign.id.desc()).offset((page - 1) * limit).limit(limit).all()

    ids = [c.id for c in campaigns]
    subs = _submission_counts(db, ids)
    acts = _activity_counts(db, ids)
    data = [
        {
            **_snapshot(c),
            "isOwner": is_owner(client.id, c),
            "submissions": subs.get(c.id, 0),
            "actions": subs.get(c.id, 0) + acts.get(c.id, 0),
            "createdAt": c.created_at.isoformat() if c.created_at else None,
        }
        for c in campaigns
    ]
    return {
        "data": data,
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if total else 0,
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


@router.get("/sidebar")
def sidebar(db: Session = Depends(get_db), client=Depends(get_current_client)):
    campaigns = (
        db.query(Campaign)
        .filter(accessible_campaigns_clause(client.id))
        .order_by(Campaign.name.asc())
        .all()
    )
    rows = [{"id": c.id, "name": c.name, "favorite": bool(c.favorite)} for c in campaigns]
    return {
        "data": {
            "favoriteCampaigns": [r for r in rows if r["favorite"]],
            "otherCampaigns": [r for r in rows if not r["favorite"]],
        }
    }


@router.get("/{campaign_id}")
def campaign_stats(campaign_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    campaign = get_campaign_for_actor(db, client.id, campaign_id)

    per_day: OrderedDict[str, int] = OrderedDict()
    created = (
        db.query(Submission.created_at)
        .filter(Submission.campaign_id == campaign.id, Submission.deleted_at.is_(None))
        .order_by(Submission.created_at.asc())
        .all()
    )
    for (ts,) in created:
        day = ts.date().isoformat()
        per_day[day] = per_day.get(day, 0) + 1

    answers_stats = []
    fields = (
        db.query(FormField)
        .join(Form, Form.id == FormField.form_id)
        .filter(Form.campaign_id == campaign.id)
        .order_by(FormField.ordre.asc())
        .all()
    )
    for ff in fields:
        options = [o.get("content") for o in ff.options if o.get("content")]
        if not options:
            continue
        values = [
            v
            for (v,) in db.query(Answer.value)
            .join(Submission, Submission.id == Answer.submission_id)
            .filter(Answer.form_field_id == ff.id, Submission.deleted_at.is_(None))
            .all()
        ]
        counts = {o: 0 for o in options}
        for v in values:
            if v in counts:
                counts[v] += 1
        percentages = {o: (n / len(values)) * 100 for o, n in counts.items()} if values else {}
        answers_stats.append({
            "fieldId": ff.id,
            "label": ff.display_label,
            "stats": counts,
            "percentage": percentages,
        })

    actions = {
        kind: db.query(model).filter(model.campaign_id == campaign.id).count()
        for kind, model in ACTIVITY_MODELS.items()
    }
    return {
        "data": {
            **_snapshot(campaign),
            "submissionsByDay": dict(per_day),
            "answersStats": answers_stats,
            "actions": actions,
        }
    }


@router.get("/{campaign_id}/history")
def campaign_history(
    campaign_id: int,
    entity: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(200, ge=10, le=1000),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    campaign = get_campaign_for_actor(db, client.id, campaign_id)
    return {"data": list_audit_logs(db, campaign.id, entity=entity, action=action, limit=limit)}


@router.patch("/{campaign_id}")
def update_campaign(
    campaign_id: int,
    body: CampaignUpdate,
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    campaign = get_campaign_for_actor(db, client.id, campaign_id)
    require(is_owner(client.id, campaign), "Only the campaign owner can change it")

    before = _snapshot(campaign)
    if body.campaign_name is not None:
        campaign.name = body.campaign_name.strip()
    if body.description is not None:
        campaign.description = body.description.strip()
    if body.status is not None:
        campaign.status = body.status
    add_audit_log(
        db, actor_id=client.id, campaign_id=campaign.id, action="update", entity="campaign",
        entity_id=campaign.id, before=before, after=_snapshot(campaign),
    )
    db.commit()
    return {"message": "Campaign updated", "data": _snapshot(campaign)}


@router.post("/{campaign_id}/favorite")
def toggle_favorite(campaign_id: int, db: Session = Depends(get_db), client=Depends(get_current_client)):
    campaign = get_campaign_for_actor(db, client.id, campaign_id)
    campaign.favorite = not bool(campaign.favorite)
    db.commit()
    return {"message": "Campaign favorite updated", "data": {"id": campaign.id, "name": campaign.name, "favorite": campaign.favorite}}


@router.post("", status_code=201)
def create_campaign(body: CampaignCreate, db: Session = Depends(get_db), client=Depends(get_current_client)):
    require(len(body.fields) > 0, "At least one field is required", 400)
    ids = {f.id for f in body.fields}
    catalog = db.query(FieldType).filter(FieldType.id.in_(ids)).all()
    require(len(catalog) == len(ids), "Invalid fields", 400)

    by_id = {ft.id: ft for ft in catalog}
    counts = [FieldCount(field_name=by_id[f.id].field_name, count=f.quantity) for f in body.fields]

    name = body.campaign_name.strip()
    campaign, form = _create_campaign(db, client.id, name, title=name)
    fields = fields_from_counts(counts, catalog, form.id)
    _finish_creation(db, client.id, campaign, fields, "catalog")
    return {"message": "Campaign created", "campaign": {"id": campaign.id, "name": campaign.name, "fieldsCount": len(fields)}}


def _import_from_analysis(db: Session, actor_id: int, name: str, grid) -> dict:
    analyses = analyze_grid(grid)
    if not analyses:
        raise InputError("No column header found in the file")

    catalog = db.query(FieldType).order_by(FieldType.id.asc()).all()
    campaign, form = _create_campaign(
        db, actor_id, name, title=name, description="Formulaire généré à partir de l'analyse du fichier"
    )
    fields = fields_from_analysis(analyses, catalog, form.id)
    _finish_creation(db, actor_id, campaign, fields, "analysis")
    return {
        "message": "Campaign created from file analysis",
        "campaign": {"id": campaign.id, "name": campaign.name, "fieldsCount": len(fields)},
        "fields": [a.as_dict() for a in analyses],
    }


def _import_from_counts(db: Session, actor_id: int, name: str, grid) -> dict:
    counts = extract_field_counts(grid)
    if not counts:
        raise InputError("Aucun champ valide trouvé dans le fichier Excel")

    catalog = db.query(FieldType).all()
    known = {ft.field_name for ft in catalog}
    invalid = [fc.field_name for fc in counts if fc.field_name not in known]
    if invalid:
        raise InputError(
            "Certains champs dans votre fichier Excel n'existent pas dans notre système",
            invalidFields=invalid,
        )

    campaign, form = _create_campaign(
        db, actor_id, name, title=name, description="Formulaire généré à partir des comptages de champs Excel"
    )
    fields = fields_from_counts(counts, catalog, form.id)
    _finish_creation(db, actor_id, campaign, fields, "excel")
    return {
        "message": "Campagne créée avec succès à partir du fichier Excel",
        "campaign": {"id": campaign.id, "name": campaign.name, "fieldsCount": len(fields)},
        "fieldCounts": [{"fieldName": fc.field_name, "count": fc.count} for fc in counts],
    }


@router.post("/analyze")
async def analyze_file(file: UploadFile = File(...), client=Depends(get_current_client)):
    grid = await _read_grid(file)
    analyses = await run_in_threadpool(analyze_grid, grid)
    require(len(analyses) > 0, "No column header found in the file", 400)
    return {
        "message": "File analysed",
        "rowCount": grid.row_count,
        "fields": [a.as_dict() for a in analyses],
    }


# queries and commits of the upload handlers run in the threadpool
@router.post("/import", status_code=201)
async def import_campaign(
    file: UploadFile = File(...),
    campaign_name: str = FormParam(..., alias="campaignName"),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    name = _campaign_name(campaign_name)
    grid = await _read_grid(file)
    return await run_in_threadpool(_import_from_analysis, db, client.id, name, grid)


@router.post("/from-excel", status_code=201)
async def create_from_excel(
    file: UploadFile = File(...),
    campaign_name: str = FormParam(..., alias="campaignName"),
    db: Session = Depends(get_db),
    client=Depends(get_current_client),
):
    name = _campaign_name(campaign_name)
    grid = await _read_grid(file)
    return await run_in_threadpool(_import_from_counts, db, client.id, name, grid)


@router.post("/from-model", status_code=201)
def create_from_model(body: CampaignFromModel, db: Session = Depends(get_db), client=Depends(get_current_client)):
    model: Optional[ModelForm] = (
        db.query(ModelForm)
        .options(selectinload(ModelForm.fields))
        .filter(ModelForm.id == body.model_form_id)
        .first()
    )
    if model is None:
        raise NotFoundError("Modèle de formulaire non trouvé")

    name = body.campaign_name.strip()
    campaign, form = _create_campaign(
        db,
        client.id,
        name,
        title=model.title or name,
        description=model.description or "",
        cover_color=model.cover_color,
        cover_image=model.cover_image,
        mode=model.mode or "single",
        success_message=model.success_message or "",
    )
    fields = [
        FormField(
            form_id=form.id,
            field_type_id=mf.field_type_id,
            label=mf.label,
            required=mf.required,
            disabled=mf.disabled,
            ordre=mf.ordre,
            placeholder=mf.placeholder,
            message=mf.message,
            options_json=mf.options_json or "[]",
        )
        for mf in model.fields
    ]
    _finish_creation(db, client.id, campaign, fields, "model")
    return {
        "message": "Campagne créée avec succès à partir du modèle",
        "campaign": {"id": campaign.id, "name": campaign.name, "fieldsCount": len(fields)},
    }
