from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import Field

from scribo.schemas.base import CamelModel
from scribo.utils.submission_filters import FieldFilter, SubmissionCriteria


class FieldFilterIn(CamelModel):
    field_id: int
    values: list[str] = Field(min_length=1)


class CriteriaIn(CamelModel):
    search: list[str] = Field(default_factory=list)
    search_field_id: Optional[int] = None
    field_filters: list[FieldFilterIn] = Field(default_factory=list)
    date_from: Optional[Union[date, datetime]] = None
    date_to: Optional[Union[date, datetime]] = None
    favorite: Optional[bool] = None
    ids: Optional[list[int]] = None
    since_last_export: bool = False

    def to_criteria(self) -> SubmissionCriteria:
        return SubmissionCriteria(
            search=list(self.search),
            search_field_id=self.search_field_id,
            field_filters=[FieldFilter(field_id=f.field_id, values=list(f.values)) for f in self.field_filters],
            date_from=self.date_from,
            date_to=self.date_to,
            favorite=self.favorite,
            ids=list(self.ids) if self.ids else None,
            since_last_export=self.since_last_export,
        )


class SearchIn(CriteriaIn):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=200)
    order: Literal["asc", "desc"] = "desc"


class ExportIn(CriteriaIn):
    format: str = "csv"
    delimiter: Optional[str] = None
    fields: Optional[list[int]] = None
    order: Literal["asc", "desc"] = "desc"


class AnswerIn(CamelModel):
    field_id: int
    value: Union[str, int, float, bool, list[str], None] = None


class PublicSubmitIn(CamelModel):
    answers: list[AnswerIn] = Field(default_factory=list)
