from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, declared_attr

from scribo.db.base import Base


class ActivityMixin:
    """Columns shared by every follow-up activity attached to a submission."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    @declared_attr
    def campaign_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"), index=True)

    @declared_attr
    def submission_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("submissions.id", ondelete="CASCADE"), index=True)

    @declared_attr
    def created_by_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("clients.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


class Note(ActivityMixin, Base):
    __tablename__ = "notes"

    content: Mapped[str] = mapped_column(Text)


class Email(ActivityMixin, Base):
    __tablename__ = "emails"

    recipient: Mapped[str] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(255), default="")
    body: Mapped[str] = mapped_column(Text, default="")
    # recorded / sent / failed
    status: Mapped[str] = mapped_column(String(20), default="recorded")
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Call(ActivityMixin, Base):
    __tablename__ = "calls"

    phone: Mapped[str] = mapped_column(String(60), default="")
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    summary: Mapped[str] = mapped_column(Text, default="")


class Task(ActivityMixin, Base):
    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    due_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    done: Mapped[bool] = mapped_column(Boolean, default=False)


class Appointment(ActivityMixin, Base):
    __tablename__ = "appointments"

    title: Mapped[str] = mapped_column(String(255))
    starts_at: Mapped[datetime] = mapped_column(DateTime)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    location: Mapped[str] = mapped_column(String(255), default="")
