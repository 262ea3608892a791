from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from scribo.schemas.base import CamelModel


class NoteIn(CamelModel):
    note: str = Field(min_length=3)


class EmailIn(CamelModel):
    recipient: EmailStr
    subject: str = Field(default="", max_length=255)
    body: str = ""
    send: bool = True


class CallIn(CamelModel):
    phone: str = Field(default="", max_length=60)
    duration_seconds: int = Field(default=0, ge=0)
    summary: str = ""


class TaskIn(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    due_at: Optional[datetime] = None
    done: bool = False


class AppointmentIn(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    starts_at: datetime
    ends_at: Optional[datetime] = None
    location: str = ""
