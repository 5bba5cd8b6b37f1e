from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator


class AuthUser(BaseModel):
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return self.user_metadata.get("full_name") or ""


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("full_name must not be empty")
        return value


class UserProfileRow(BaseModel):
    id: str
    email: str | None = None
    full_name: str | None = None
    photo_url: str | None = None
    updated_at: datetime | None = None

    model_config = {"extra": "allow"}
