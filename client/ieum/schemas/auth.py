from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ieum.schemas.base import WireModel
from ieum.schemas.user import User
from ieum.security.validators import InputValidator


class RegisterIn(WireModel):
    """Registration request, validated before it leaves the device."""

    name: str = Field(min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    nickname: Optional[str] = Field(default=None, max_length=64)
    image_url: Optional[str] = None
    is_special: Optional[bool] = None

    @field_validator('name', 'nickname')
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return InputValidator.sanitize_string(v.strip(), max_length=64)


class LoginIn(WireModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator('password')
    @classmethod
    def validate_password_not_empty(cls, v: str) -> str:
        """Ensure password is not whitespace-only."""
        if not v.strip():
            raise ValueError('Password cannot be empty')
        return v


class AuthResponse(WireModel):
    ok: bool = True
    user: Optional[User] = None
    token: Optional[str] = None
