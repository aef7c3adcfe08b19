from __future__ import annotations

from threading import Lock
from typing import Dict

from adstudio.models.domain import UserRecord


class UserRecordRepository:
    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._lock = Lock()

    def save(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.email] = user
        return user

    def get(self, email: str) -> UserRecord | None:
        with self._lock:
            user = self._users.get(email)
            return user.model_copy(deep=True) if user else None

    def get_or_create(self, email: str, default_credits: int, name: str = "", picture: str = "") -> UserRecord:
        with self._lock:
            user = self._users.get(email)
            if user is None:
                user = UserRecord(name=name or email, email=email, picture=picture, credits=default_credits)
                self._users[email] = user
            return user.model_copy(deep=True)
