from datetime import datetime
from typing import Optional

from pydantic import Field

from scribo.schemas.base import CamelModel


class OptionIn(CamelModel):
    ordre: int
    content: str
    disabled: bool = False


class FormUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    cover_color: Optional[str] = None
    cover_image: Optional[str] = None
    mode: Optional[str] = Field(default=None, pattern="^(single|steps)$")
    success_message: Optional[str] = None
    deactivated_at: Optional[datetime] = None
    is_deactivated: Optional[bool] = None


class FormFieldCreate(CamelModel):
    field_type_id: int
    label: Optional[str] = None
    name: Optional[str] = None


class FormFieldUpdate(CamelModel):
    label: Optional[str] = None
    name: Optional[str] = None
    required: Optional[bool] = None
    disabled: Optional[bool] = None
    ordre: Optional[int] = Field(default=None, ge=1)
    placeholder: Optional[str] = None
    message: Optional[str] = None
    options: Optional[list[OptionIn]] = None
