from typing import Optional

from pydantic import Field

from scribo.schemas.base import CamelModel


class FieldQuantity(CamelModel):
    id: int
    quantity: int = Field(default=1, gt=0)


class CampaignCreate(CamelModel):
    campaign_name: str = Field(min_length=3, max_length=200)
    fields: list[FieldQuantity] = Field(default_factory=list)


class CampaignFromModel(CamelModel):
    campaign_name: str = Field(min_length=3, max_length=200)
    model_form_id: int


class CampaignUpdate(CamelModel):
    campaign_name: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, min_length=3)
    status: Optional[str] = Field(default=None, pattern="^(draft|active|closed)$")
