from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from scribo.db.base import Base


class FieldType(Base):
    """Catalog of input kinds a form field can be built from (seeded)."""

    __tablename__ = "field_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    field_name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    icon: Mapped[str] = mapped_column(String(120), default="")
    # text/textarea/email/url/tel/number/radio/checkbox/select/date/time/datetime/file/image/map/range/...
    type: Mapped[str] = mapped_column(String(40), index=True)
