# client/ieum/api/users.py
from __future__ import annotations

from typing import Any, List, Optional

from ieum.api.client import ApiClient
from ieum.api.validation import validated
from ieum.schemas.user import Friend, SettingsUpdate, User, UserSetting
from ieum.security.validators import InputValidator


class UserApi:
    def __init__(self, api: ApiClient):
        self.api = api

    def get_friends(self) -> List[Friend]:
        data = self.api.get("/friends")
        return [Friend.model_validate(f) for f in data.get("friends") or []]

    def search_users(self, query: str) -> List[User]:
        cleaned = InputValidator.validate_search_query(query, min_length=self.api.settings.min_search_length)
        data = self.api.get("/friends/search", params={"query": cleaned})
        return [User.model_validate(u) for u in data.get("users") or []]

    def add_friend(self, friend_id: int) -> dict[str, Any]:
        return self.api.post("/friends", {"friendId": friend_id})

    def remove_friend(self, friend_id: int) -> dict[str, Any]:
        return self.api.delete(f"/friends/{friend_id}")

    def update_settings(self, **changes: Any) -> Optional[UserSetting]:
        """
        PATCH the current user's settings and refresh the cached profile.

        Only the given fields are sent; the cached profile is merged with the
        server's answer, falling back to the requested values.
        """
        update = validated(SettingsUpdate, **changes)
        body = update.model_dump(mode="json", by_alias=True, exclude_unset=True)
        data = self.api.patch("/users/me/settings", body)

        raw = data.get("setting")
        setting = UserSetting.model_validate(raw) if raw else None

        user = self.api.credentials.get_user()
        if user is not None:
            merged = (user.setting or UserSetting()).model_dump()
            if setting is not None:
                merged.update(setting.model_dump())
            else:
                merged.update(update.model_dump(exclude_unset=True))
            user = user.model_copy(update={"setting": UserSetting(**merged)})
            self.api.credentials.save_user(user)

        return setting

    def update_push_token(self, token: str) -> bool:
        return self.api.update_push_token(token)
