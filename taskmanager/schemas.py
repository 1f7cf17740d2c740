from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from .models import TaskStatus

MAX_PASSWORD_BYTES = 72


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


# Task schemas
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value):
        return _not_blank(value)


class TaskUpdate(BaseModel):
    """Fields left out of the body keep their stored value."""
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_null(cls, value):
        if value is None:
            raise ValueError("title may be omitted but not null")
        return _not_blank(value)


class TaskView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus


# User schemas
class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, value):
        return _not_blank(value)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value):
        # bcrypt only accepts 72 bytes, not characters
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
        return value


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
