from sqlalchemy import String, Integer, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from scribo.db.base import Base


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)


class ModelForm(Base):
    """Reusable form template a campaign can be created from."""

    __tablename__ = "model_forms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    cover_color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cover_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    mode: Mapped[str] = mapped_column(String(20), default="single")
    success_message: Mapped[str] = mapped_column(Text, default="")

    category = relationship("Category")
    fields = relationship("ModelFormField", order_by="ModelFormField.ordre", cascade="all, delete-orphan")


class ModelFormField(Base):
    __tablename__ = "model_form_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    model_form_id: Mapped[int] = mapped_column(ForeignKey("model_forms.id", ondelete="CASCADE"), index=True)
    field_type_id: Mapped[int] = mapped_column(ForeignKey("field_types.id"), index=True)

    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, default=False)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False)
    ordre: Mapped[int] = mapped_column(Integer, default=0)
    placeholder: Mapped[str] = mapped_column(String(255), default="")
    message: Mapped[str] = mapped_column(String(255), default="")
    options_json: Mapped[str] = mapped_column(Text, default="[]")
