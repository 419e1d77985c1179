"""Explicit session context holding the signed-in user and token.

The session is created by the caller and passed to whatever needs it (the
API client, the assessment-taking session). ``hydrate`` restores it from a
credential file and ``clear`` tears it down; nothing is kept at module level.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path

from smarteval.core.models import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UserSession:
    user: User | None = None
    token: str | None = None
    store_path: Path | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    def require_user(self) -> User:
        if self.user is None:
            raise RuntimeError("No user is signed in.")
        return self.user

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    @classmethod
    def hydrate(cls, store_path: Path) -> "UserSession":
        """Restore a session from disk; a missing or corrupt store gives an empty session."""
        session = cls(store_path=store_path)
        if not store_path.exists():
            return session
        try:
            payload = json.loads(store_path.read_text(encoding="utf-8"))
            user_data = payload["user"]
            session.user = User(
                id=user_data["id"],
                username=user_data["username"],
                email=user_data["email"],
                role=UserRole(user_data["role"]),
            )
            session.token = payload["token"]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable credential store %s: %s", store_path, exc)
            store_path.unlink(missing_ok=True)
            session.user = None
            session.token = None
        return session

    def login(self, user: User, token: str) -> None:
        self.user = user
        self.token = token
        if self.store_path is not None:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            payload = {
                "user": {
                    "id": user.id,
                    "username": user.username,
                    "email": user.email,
                    "role": user.role.value,
                },
                "token": token,
            }
            self.store_path.write_text(json.dumps(payload), encoding="utf-8")

    def clear(self) -> None:
        self.user = None
        self.token = None
        if self.store_path is not None:
            self.store_path.unlink(missing_ok=True)
