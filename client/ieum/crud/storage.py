# client/ieum/crud/storage.py
from __future__ import annotations

import json
import logging
from typing import Iterable

from pydantic import ValidationError as SchemaError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from ieum.core.tokens import is_token_expired
from ieum.models.stored_item import StoredItem
from ieum.schemas.user import User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


def get_item(db: Session, key: str) -> str | None:
    stmt = select(StoredItem.value).where(StoredItem.key == key)
    return db.execute(stmt).scalar_one_or_none()


def set_item(db: Session, key: str, value: str) -> None:
    item = db.get(StoredItem, key)
    if item is None:
        db.add(StoredItem(key=key, value=value))
    else:
        item.value = value
    db.commit()


def remove_item(db: Session, key: str) -> None:
    remove_items(db, [key])


def remove_items(db: Session, keys: Iterable[str]) -> None:
    db.execute(delete(StoredItem).where(StoredItem.key.in_(list(keys))))
    db.commit()


class CredentialStore:
    """
    Auth token and cached profile, persisted across restarts.

    Both values live under fixed keys; ``clear()`` removes them together on
    logout or when the backend rejects the token.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_token(self) -> str | None:
        with self._session_factory() as db:
            token = get_item(db, TOKEN_KEY)
            if token and is_token_expired(token):
                logger.info("Stored token expired, clearing credentials")
                remove_items(db, [TOKEN_KEY, USER_KEY])
                return None
            return token

    def get_user(self) -> User | None:
        with self._session_factory() as db:
            raw = get_item(db, USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except (ValueError, SchemaError):
            logger.warning("Cached user profile is unreadable, ignoring it")
            return None

    def get_user_id(self) -> int | None:
        user = self.get_user()
        return user.id if user else None

    def is_authenticated(self) -> bool:
        return bool(self.get_token())

    def save(self, token: str, user: User) -> None:
        with self._session_factory() as db:
            set_item(db, TOKEN_KEY, token)
            set_item(db, USER_KEY, json.dumps(user.to_wire()))

    def save_user(self, user: User) -> None:
        with self._session_factory() as db:
            set_item(db, USER_KEY, json.dumps(user.to_wire()))

    def clear(self) -> None:
        with self._session_factory() as db:
            remove_items(db, [TOKEN_KEY, USER_KEY])
