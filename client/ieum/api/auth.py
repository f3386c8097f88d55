# client/ieum/api/auth.py
from __future__ import annotations

import logging
from typing import Callable

from ieum.api.client import ApiClient
from ieum.api.validation import validated
from ieum.core.errors import AppError
from ieum.core.events import Listeners, Subscription
from ieum.schemas.auth import AuthResponse, LoginIn, RegisterIn
from ieum.schemas.user import User

logger = logging.getLogger(__name__)


class AuthService:
    """Login state: backend calls plus the locally stored token and profile."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.credentials = api.credentials
        self._listeners = Listeners()
        # a rejected token is an auth state change too
        self._failure_sub = api.on_auth_failure(lambda _error: self._listeners.notify())

    def add_auth_listener(self, listener: Callable[[], None]) -> Subscription:
        return self._listeners.add(listener)

    def _store(self, data: dict) -> AuthResponse:
        resp = AuthResponse.model_validate(data)
        if resp.token and resp.user:
            self.credentials.save(resp.token, resp.user)
            self._listeners.notify()
        return resp

    def register(self, payload: RegisterIn) -> AuthResponse:
        data = self.api.post("/auth/register", payload.to_wire())
        return self._store(data)

    def login(self, email: str, password: str) -> AuthResponse:
        payload = validated(LoginIn, email=email, password=password)
        data = self.api.post("/auth/login", payload.to_wire())
        return self._store(data)

    def logout(self) -> None:
        try:
            self.api.post("/auth/logout")
        except AppError as e:
            logger.info("Logout request failed, clearing local session anyway: %s", e)
        finally:
            self.credentials.clear()
            self._listeners.notify()

    def get_current_user(self) -> User | None:
        """Fetch the profile from the backend and refresh the cached copy."""
        try:
            data = self.api.get("/auth/me")
        except AppError:
            return None

        raw = data.get("user")
        if not raw:
            return None
        user = User.model_validate(raw)
        self.credentials.save_user(user)
        return user

    def get_token(self) -> str | None:
        return self.credentials.get_token()

    def get_user(self) -> User | None:
        return self.credentials.get_user()

    def get_user_id(self) -> int | None:
        return self.credentials.get_user_id()

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()

    def get_profile_image(self) -> str | None:
        user = self.get_user()
        if user and user.setting:
            return user.setting.image_url
        return None

    def is_special_user(self) -> bool:
        user = self.get_user()
        return bool(user and user.setting and user.setting.is_special)
