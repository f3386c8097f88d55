from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from ieum.schemas.base import WireModel


class UserSetting(WireModel):
    nickname: Optional[str] = None
    image_url: Optional[str] = None
    is_special: bool = False  # accessibility interface
    is_test: bool = False
    enable_notifications: bool = False
    enable_summary: bool = False
    is_online: Optional[bool] = None
    last_seen_at: Optional[datetime] = None


class User(WireModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    setting: Optional[UserSetting] = None
    created_at: Optional[datetime] = None
    friendship_status: Optional[Literal["none", "pending", "accepted", "blocked"]] = None

    @property
    def display_name(self) -> str:
        if self.setting and self.setting.nickname:
            return self.setting.nickname
        return self.name


class Friend(WireModel):
    id: int
    name: str
    email: Optional[str] = None
    setting: Optional[UserSetting] = None


class SettingsUpdate(WireModel):
    """Partial update for PATCH /users/me/settings; unset fields are not sent."""
    nickname: Optional[str] = Field(default=None, max_length=64)
    image_url: Optional[str] = None
    is_special: Optional[bool] = None
    enable_notifications: Optional[bool] = None
    enable_summary: Optional[bool] = None
