"""Turn submission search criteria into SQLAlchemy predicates.

The builder only describes the filtering: it accumulates independent
conditions that are ANDed together by whoever runs the query (count,
paginated page or export). Answers are stored one row per (submission, form
field), so every answer-level condition is its own EXISTS sub-query; several
search terms therefore narrow the result instead of widening it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Mapping, Optional

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from scribo.core.errors import InputError, NotFoundError
from scribo.db.models.submission import Answer, Submission

CHECKBOX = "checkbox"


@dataclass
class FieldFilter:
    field_id: int
    values: list[str]


@dataclass
class SubmissionCriteria:
    search: list[str] = field(default_factory=list)
    search_field_id: Optional[int] = None
    field_filters: list[FieldFilter] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    favorite: Optional[bool] = None
    ids: Optional[list[int]] = None
    since_last_export: bool = False

    def referenced_field_ids(self) -> set[int]:
        out = {int(f.field_id) for f in self.field_filters}
        if self.search_field_id is not None:
            out.add(int(self.search_field_id))
        return out


class SubmissionFilter:
    """Ordered list of conditions, combined with AND when evaluated."""

    def __init__(self, campaign_id: int):
        self.campaign_id = int(campaign_id)
        self.conditions: list[ColumnElement] = [
            Submission.campaign_id == self.campaign_id,
            Submission.deleted_at.is_(None),
        ]

    def add(self, condition: ColumnElement) -> "SubmissionFilter":
        self.conditions.append(condition)
        return self

    def clause(self) -> ColumnElement:
        return and_(*self.conditions)

    def apply(self, query):
        return query.filter(*self.conditions)


def answer_contains(term: str, field_id: Optional[int] = None) -> ColumnElement:
    cond = Answer.value.icontains(term, autoescape=True)
    if field_id is not None:
        cond = and_(Answer.form_field_id == int(field_id), cond)
    return Submission.answers.any(cond)


def answer_in(field_id: int, values: list[str]) -> ColumnElement:
    return Submission.answers.any(and_(Answer.form_field_id == int(field_id), Answer.value.in_(values)))


def _naive_utc(v: datetime) -> datetime:
    # created_at is stored as naive UTC
    if v.tzinfo is None:
        return v
    return v.astimezone(timezone.utc).replace(tzinfo=None)


def _start_of(v: date) -> datetime:
    return _naive_utc(v) if isinstance(v, datetime) else datetime.combine(v, time.min)


def _created_until(v: date) -> ColumnElement:
    if isinstance(v, datetime):
        return Submission.created_at <= _naive_utc(v)
    # a bare date covers the whole day
    return Submission.created_at < datetime.combine(v + timedelta(days=1), time.min)


def build_submission_filter(
    campaign_id: int,
    criteria: SubmissionCriteria,
    *,
    field_types: Mapping[int, str],
    last_export_id: Optional[int] = None,
) -> SubmissionFilter:
    """Build the predicate for one campaign.

    field_types maps every form field referenced by the criteria to its type
    (the caller resolves it, scoped to the campaign). last_export_id is the
    watermark of the latest export, None when the campaign was never exported.
    """
    for fid in criteria.referenced_field_ids():
        if fid not in field_types:
            raise NotFoundError("Form field not found", field_id=fid)

    f = SubmissionFilter(campaign_id)

    for term in criteria.search or []:
        term = (term or "").strip()
        if term:
            f.add(answer_contains(term, criteria.search_field_id))

    for ff in criteria.field_filters or []:
        values = [str(v) for v in (ff.values or []) if str(v) != ""]
        if not values:
            raise InputError("A field filter needs at least one value", field_id=ff.field_id)
        if field_types[int(ff.field_id)] == CHECKBOX:
            for v in values:
                f.add(answer_contains(v, ff.field_id))
        else:
            f.add(answer_in(ff.field_id, values))

    if criteria.date_from is not None and criteria.date_to is not None:
        if _start_of(criteria.date_from) > _start_of(criteria.date_to):
            raise InputError("dateFrom must be before dateTo")
    if criteria.date_from is not None:
        f.add(Submission.created_at >= _start_of(criteria.date_from))
    if criteria.date_to is not None:
        f.add(_created_until(criteria.date_to))

    if criteria.favorite is not None:
        f.add(Submission.favorite.is_(bool(criteria.favorite)))

    if criteria.ids:
        f.add(Submission.id.in_([int(x) for x in criteria.ids]))

    if criteria.since_last_export and last_export_id is not None:
        f.add(Submission.id > int(last_export_id))

    return f


def order_by(order: str = "desc") -> list[ColumnElement]:
    if (order or "desc").lower() == "asc":
        return [Submission.created_at.asc(), Submission.id.asc()]
    return [Submission.created_at.desc(), Submission.id.desc()]
