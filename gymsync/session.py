from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserProfile:
    id: str | None
    name: str
    email: str
    avatar: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UserProfile":
        user_id = payload.get("id")
        avatar = payload.get("avatar")
        return cls(
            id=str(user_id) if user_id is not None else None,
            name=str(payload.get("name") or ""),
            email=str(payload.get("email") or ""),
            avatar=avatar if isinstance(avatar, str) and avatar.strip() else None,
        )


class Session:
    """Signed-in user context handed to the profile and upload flows.

    Token acquisition and refresh live outside this package; the session
    only carries the bearer token and the current profile, and is the single
    writer of that profile.
    """

    def __init__(self, user: UserProfile, *, token: str | None = None, base_url: str = ""):
        self._user = user
        self.token = token
        self.base_url = base_url.rstrip("/")

    @property
    def user(self) -> UserProfile:
        return self._user

    def update_user_profile(self, **changes: Any) -> UserProfile:
        self._user = replace(self._user, **changes)
        logger.debug("Session profile updated: %s", sorted(changes))
        return self._user

    def avatar_url(self) -> str | None:
        if not self._user.avatar:
            return None
        return f"{self.base_url}/avatar/{self._user.avatar}"
