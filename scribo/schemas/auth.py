from pydantic import EmailStr, Field

from scribo.schemas.base import CamelModel


class RegisterIn(CamelModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class LoginIn(CamelModel):
    email: EmailStr
    password: str
