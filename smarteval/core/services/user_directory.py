"""Service for looking up platform users by id or email."""

from __future__ import annotations

from uuid import uuid4

from smarteval.core.errors import NotFoundError, ValidationError
from smarteval.core.models import User, UserRole


class UserDirectory:
    """Registry of users. Emails are unique, compared case-insensitively."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def register(self, username: str, email: str, role: UserRole, user_id: str | None = None) -> User:
        cleaned_name = username.strip()
        cleaned_email = email.strip()
        if not cleaned_name:
            raise ValidationError("Username is required.")
        if "@" not in cleaned_email:
            raise ValidationError("A valid email address is required.")
        if self.find_by_email(cleaned_email) is not None:
            raise ValidationError("Email is already registered.")
        user = User(id=user_id or uuid4().hex, username=cleaned_name, email=cleaned_email, role=role)
        if user.id in self._users:
            raise ValidationError("User id is already taken.")
        self._users[user.id] = user
        return user

    def get(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def find(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        wanted = email.strip().lower()
        return next((u for u in self._users.values() if u.email.lower() == wanted), None)

    def resolve(self, identifier: str) -> User | None:
        """Find a user by id or email, ignoring case and surrounding whitespace."""
        cleaned = identifier.strip()
        if "@" in cleaned:
            return self.find_by_email(cleaned)
        user = self._users.get(cleaned)
        if user is not None:
            return user
        wanted = cleaned.lower()
        return next((u for u in self._users.values() if u.id.lower() == wanted), None)
