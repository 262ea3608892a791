from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scribo.db.base import Base


def _load_options(raw: str | None) -> list[dict]:
    try:
        v = json.loads(raw or "[]")
    except ValueError:
        return []
    return v if isinstance(v, list) else []


class Form(Base):
    __tablename__ = "forms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), unique=True, index=True)

    title: Mapped[str] = mapped_column(String(200), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    cover_color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cover_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # single page / step by step
    mode: Mapped[str] = mapped_column(String(20), default="single")
    success_message: Mapped[str] = mapped_column(Text, default="")
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    campaign = relationship("Campaign", back_populates="form")
    fields = relationship(
        "FormField",
        back_populates="form",
        order_by="FormField.ordre",
        cascade="all, delete-orphan",
    )


class FormField(Base):
    __tablename__ = "form_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    form_id: Mapped[int] = mapped_column(ForeignKey("forms.id", ondelete="CASCADE"), index=True)
    field_type_id: Mapped[int] = mapped_column(ForeignKey("field_types.id"), index=True)

    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, default=False)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False)
    ordre: Mapped[int] = mapped_column(Integer, default=0, index=True)
    placeholder: Mapped[str] = mapped_column(String(255), default="")
    message: Mapped[str] = mapped_column(String(255), default="")
    # [{"ordre": 1, "content": "...", "disabled": false}, ...]
    options_json: Mapped[str] = mapped_column(Text, default="[]")

    form = relationship("Form", back_populates="fields")
    field_type = relationship("FieldType")

    @property
    def options(self) -> list[dict]:
        return _load_options(self.options_json)

    @options.setter
    def options(self, value: list[dict]) -> None:
        self.options_json = json.dumps(value or [], ensure_ascii=False)

    @property
    def type(self) -> str:
        return self.field_type.type if self.field_type else "text"

    @property
    def display_label(self) -> str:
        return self.label or self.name or f"field#{self.id}"
